"""Tests for structured digesting — proves digests match a standard EIP-712 wallet."""

import pytest
from eth_abi import encode
from eth_account.messages import encode_typed_data

from quorumsig.chain.world import WorldState
from quorumsig.crypto.typed_data import (
    ACTION_TYPE,
    ACTIONS_TYPE,
    SWAP_TYPE,
    StructuredDataEncoder,
    hash_domain,
    keccak,
    request_typed_data,
    swap_typed_data,
    type_hash,
)
from quorumsig.engine.batch import BatchExecutor
from quorumsig.models.authorization import Action, ActionKind, AuthorizationRequest, SwapOffer
from quorumsig.models.domain import Domain

from conftest import NOW


TARGET = "0x" + "11" * 20
ENGINE = "0x" + "22" * 20


def _domain(**overrides) -> Domain:
    fields = dict(name="MULTISIG_DOMAIN", version="1", chain_id=31337, verifying_contract=ENGINE)
    fields.update(overrides)
    return Domain(**fields)


def _request(signers, actions=None, deadline=NOW + 60) -> AuthorizationRequest:
    if actions is None:
        actions = [
            Action(ActionKind.CALL, TARGET, 5, b"\xde\xad\xbe\xef"),
            Action(ActionKind.STATIC_CALL, TARGET, 0, b""),
        ]
    return AuthorizationRequest(actions=actions, signers=signers, deadline=deadline)


def _wallet_digest(full_message: dict) -> bytes:
    signable = encode_typed_data(full_message=full_message)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


class TestTypeStrings:
    def test_actions_type_appends_referenced_action(self) -> None:
        assert ACTIONS_TYPE.endswith(ACTION_TYPE)
        assert ACTIONS_TYPE.startswith("Actions(Action[] list,")

    def test_swap_type_field_order(self) -> None:
        assert SWAP_TYPE.startswith("Swap(address ownerA,address ownerB,")
        assert SWAP_TYPE.endswith("uint256 deadline)")


class TestWalletCompatibility:
    def test_domain_separator_matches_wallet(self) -> None:
        domain = _domain()
        document = request_typed_data(domain, _request([]), [])
        signable = encode_typed_data(full_message=document)
        assert signable.header == hash_domain(domain)

    def test_request_preimage_hashes_to_wallet_struct_hash(self, alice, bob) -> None:
        domain = _domain()
        request = _request([alice.address, bob.address])
        encoder = StructuredDataEncoder(domain)
        signable = encode_typed_data(
            full_message=request_typed_data(domain, request, [0, 7])
        )
        assert keccak(encoder.encode_request_preimage(request, [0, 7])) == signable.body

    def test_request_digest_matches_wallet(self, alice, bob) -> None:
        domain = _domain()
        request = _request([alice.address, bob.address])
        encoder = StructuredDataEncoder(domain)
        document = request_typed_data(domain, request, [3, 4])
        assert encoder.request_digest(request, [3, 4]) == _wallet_digest(document)

    def test_empty_action_list_matches_wallet(self, alice) -> None:
        domain = _domain()
        request = _request([alice.address], actions=[])
        encoder = StructuredDataEncoder(domain)
        document = request_typed_data(domain, request, [0])
        assert encoder.request_digest(request, [0]) == _wallet_digest(document)

    def test_swap_digest_matches_wallet(self, alice, bob) -> None:
        domain = _domain(name="SwapperDomain")
        offer = SwapOffer(
            bob.address, alice.address, TARGET, ENGINE,
            value_a=10, value_b=5, deadline=NOW + 60, nonce_a=1, nonce_b=2,
        )
        encoder = StructuredDataEncoder(domain)
        assert encoder.swap_digest(offer) == _wallet_digest(swap_typed_data(domain, offer))


class TestDigestSensitivity:
    def test_action_order_changes_digest(self, alice) -> None:
        encoder = StructuredDataEncoder(_domain())
        first = Action(ActionKind.CALL, TARGET, 1)
        second = Action(ActionKind.CALL, TARGET, 2)
        forward = _request([alice.address], actions=[first, second])
        backward = _request([alice.address], actions=[second, first])
        assert encoder.request_digest(forward, [0]) != encoder.request_digest(backward, [0])

    def test_nonce_changes_digest(self, alice) -> None:
        encoder = StructuredDataEncoder(_domain())
        request = _request([alice.address])
        assert encoder.request_digest(request, [0]) != encoder.request_digest(request, [1])

    def test_deadline_changes_digest(self, alice) -> None:
        encoder = StructuredDataEncoder(_domain())
        assert encoder.request_digest(_request([alice.address], deadline=NOW), [0]) != \
            encoder.request_digest(_request([alice.address], deadline=NOW + 1), [0])

    def test_action_kind_changes_digest(self, alice) -> None:
        encoder = StructuredDataEncoder(_domain())
        call = _request([alice.address], actions=[Action(ActionKind.CALL, TARGET)])
        delegated = _request([alice.address], actions=[Action(ActionKind.DELEGATE_CALL, TARGET)])
        assert encoder.request_digest(call, [0]) != encoder.request_digest(delegated, [0])

    def test_zero_length_payload_is_hashed(self) -> None:
        encoder = StructuredDataEncoder(_domain())
        empty = encoder.hash_action(Action(ActionKind.CALL, TARGET, 0, b""))
        expected = keccak(encode(
            ["bytes32", "uint8", "address", "uint256", "bytes32"],
            [type_hash(ACTION_TYPE), 0, Action(ActionKind.CALL, TARGET).target, 0, keccak(b"")],
        ))
        assert empty == expected
        assert encoder.hash_action(Action(ActionKind.CALL, TARGET, 0, b"\x00")) != empty


class TestDomainSeparation:
    @pytest.mark.parametrize("override", [
        {"name": "OTHER_DOMAIN"},
        {"version": "2"},
        {"chain_id": 1},
        {"verifying_contract": "0x" + "33" * 20},
    ])
    def test_any_domain_field_changes_digest(self, alice, override) -> None:
        request = _request([alice.address])
        base = StructuredDataEncoder(_domain()).request_digest(request, [0])
        other = StructuredDataEncoder(_domain(**override)).request_digest(request, [0])
        assert base != other

    def test_two_deployments_have_distinct_separators(self, world, signers) -> None:
        members = [s.address for s in signers]
        first = BatchExecutor(world, "MULTISIG_DOMAIN", members, 2)
        second = BatchExecutor(world, "MULTISIG_DOMAIN", members, 2)
        assert first.address != second.address
        assert first.domain_separator != second.domain_separator

    def test_chain_id_is_bound(self, signers) -> None:
        members = [s.address for s in signers]
        local = BatchExecutor(WorldState(chain_id=31337), "MULTISIG_DOMAIN", members, 2)
        mainnet = BatchExecutor(WorldState(chain_id=1), "MULTISIG_DOMAIN", members, 2)
        assert local.domain.chain_id == 31337
        assert local.domain_separator != mainnet.domain_separator


class TestEncoderValidation:
    def test_nonce_length_mismatch_rejected(self, alice, bob) -> None:
        encoder = StructuredDataEncoder(_domain())
        with pytest.raises(ValueError):
            encoder.encode_request_preimage(_request([alice.address, bob.address]), [0])

    def test_domain_digest_requires_32_bytes(self) -> None:
        encoder = StructuredDataEncoder(_domain())
        with pytest.raises(ValueError):
            encoder.domain_digest(b"\x00" * 31)

    def test_preimage_layout(self, alice) -> None:
        encoder = StructuredDataEncoder(_domain())
        request = _request([alice.address])
        preimage = encoder.encode_request_preimage(request, [0])
        assert len(preimage) == 5 * 32
        assert preimage[32:64] == encoder.hash_action_list(request.actions)
        assert int.from_bytes(preimage[128:160], "big") == request.deadline
