"""Tests for data models — proves normalization and validation of requests."""

import pytest

from quorumsig.models.authorization import (
    UINT256_MAX,
    Action,
    ActionKind,
    AuthorizationRequest,
    SwapOffer,
)
from quorumsig.models.domain import Domain, sort_identities, to_identity


TARGET = "0x" + "ab" * 20


class TestIdentity:
    def test_checksums(self) -> None:
        assert to_identity(TARGET) == to_identity(TARGET.upper().replace("0X", "0x"))

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            to_identity("0x1234")

    def test_sorts_numerically(self, signers) -> None:
        shuffled = [signers[2].address, signers[0].address, signers[1].address]
        assert sort_identities(shuffled) == [s.address for s in signers]


class TestAction:
    def test_parses_kind_names(self) -> None:
        assert Action("delegate_call", TARGET).kind == ActionKind.DELEGATE_CALL
        assert Action(2, TARGET).kind == ActionKind.STATIC_CALL

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            Action("selfdestruct", TARGET)

    def test_hex_payload(self) -> None:
        assert Action(ActionKind.CALL, TARGET, payload="0xdeadbeef").payload == b"\xde\xad\xbe\xef"

    def test_value_must_fit_uint256(self) -> None:
        with pytest.raises(ValueError):
            Action(ActionKind.CALL, TARGET, UINT256_MAX + 1)

    def test_dict_round_trip(self) -> None:
        action = Action(ActionKind.STATIC_CALL, TARGET, 3, b"\x01")
        assert Action.from_dict(action.to_dict()) == action


class TestAuthorizationRequest:
    def test_nonce_snapshot_must_align(self, alice, bob) -> None:
        with pytest.raises(ValueError):
            AuthorizationRequest((), [alice.address, bob.address], 1, nonces=(0,))

    def test_message_shape(self, alice) -> None:
        request = AuthorizationRequest([Action(ActionKind.CALL, TARGET)], [alice.address], 9)
        message = request.to_message([4])
        assert message["nonceOfSigner"] == [4]
        assert message["list"][0]["actionType"] == 0
        assert message["deadline"] == 9

    def test_negative_deadline_rejected(self, alice) -> None:
        with pytest.raises(ValueError):
            AuthorizationRequest((), [alice.address], -1)

    def test_dict_round_trip(self, alice, bob) -> None:
        request = AuthorizationRequest(
            [Action(ActionKind.CALL, TARGET, 1)], [alice.address, bob.address], 5, nonces=(1, 2),
        )
        assert AuthorizationRequest.from_dict(request.to_dict()) == request


class TestSwapOffer:
    def test_with_nonces(self, alice, bob) -> None:
        offer = SwapOffer(alice.address, bob.address, TARGET, TARGET, 1, 2, 3)
        bound = offer.with_nonces(7, 8)
        assert (bound.nonce_a, bound.nonce_b) == (7, 8)
        assert (offer.nonce_a, offer.nonce_b) == (0, 0)

    def test_dict_round_trip(self, alice, bob) -> None:
        offer = SwapOffer(alice.address, bob.address, TARGET, TARGET, 1, 2, 3, 4, 5)
        assert SwapOffer.from_dict(offer.to_dict()) == offer


class TestDomain:
    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            Domain("", "1", 1, TARGET)

    def test_wallet_keys(self) -> None:
        assert set(Domain("D", "1", 1, TARGET).to_dict()) == {
            "name", "version", "chainId", "verifyingContract",
        }
