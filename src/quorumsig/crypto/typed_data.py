"""Structured-data digesting with domain separation (EIP-712 compatible).

Every digest commits to the signing domain, the full ordered action
list, the ordered signer list, the nonce snapshot and the deadline.
Variable-length content is always hashed to a fixed 32-byte word
before it is concatenated:

    hash_action(a)      = keccak(ACTION_TYPEHASH ‖ kind ‖ target ‖ value ‖ keccak(payload))
    hash_action_list(l) = keccak(hash_action(l[0]) ‖ hash_action(l[1]) ‖ ...)
    hash_request(r, n)  = keccak(ACTIONS_TYPEHASH ‖ hash_action_list ‖
                                 keccak(signers) ‖ keccak(nonces) ‖ deadline)
    digest              = keccak(0x19 0x01 ‖ domain_separator ‖ struct_hash)

The action list commitment is flat (not a Merkle tree): collision
resistance comes from keccak alone. The layout matches the EIP-712
encoding of the ``Actions``/``Action``/``Swap`` types below, so any
standard wallet can sign the exact bytes the engine will hash.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import encode
from web3 import Web3

from quorumsig.models.authorization import Action, AuthorizationRequest, SwapOffer
from quorumsig.models.domain import Domain


EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
ACTION_TYPE = "Action(uint8 actionType,address target,uint256 value,bytes payload)"
# Referenced struct types are appended to the primary type string.
ACTIONS_TYPE = (
    "Actions(Action[] list,address[] signers,uint256[] nonceOfSigner,uint256 deadline)"
    + ACTION_TYPE
)
SWAP_TYPE = (
    "Swap(address ownerA,address ownerB,address tokenA,address tokenB,"
    "uint256 valueA,uint256 valueB,uint256 nonceOwnerA,uint256 nonceOwnerB,"
    "uint256 deadline)"
)

EIP712_PREFIX = b"\x19\x01"

# Field lists in the shape wallets expect for typed-data signing.
EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]
ACTION_FIELDS = [
    {"name": "actionType", "type": "uint8"},
    {"name": "target", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "payload", "type": "bytes"},
]
ACTIONS_FIELDS = [
    {"name": "list", "type": "Action[]"},
    {"name": "signers", "type": "address[]"},
    {"name": "nonceOfSigner", "type": "uint256[]"},
    {"name": "deadline", "type": "uint256"},
]
SWAP_FIELDS = [
    {"name": "ownerA", "type": "address"},
    {"name": "ownerB", "type": "address"},
    {"name": "tokenA", "type": "address"},
    {"name": "tokenB", "type": "address"},
    {"name": "valueA", "type": "uint256"},
    {"name": "valueB", "type": "uint256"},
    {"name": "nonceOwnerA", "type": "uint256"},
    {"name": "nonceOwnerB", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


def keccak(data: bytes) -> bytes:
    """Keccak-256 of raw bytes."""
    return bytes(Web3.keccak(data))


def type_hash(type_string: str) -> bytes:
    return bytes(Web3.keccak(text=type_string))


DOMAIN_TYPEHASH = type_hash(EIP712_DOMAIN_TYPE)
ACTION_TYPEHASH = type_hash(ACTION_TYPE)
ACTIONS_TYPEHASH = type_hash(ACTIONS_TYPE)
SWAP_TYPEHASH = type_hash(SWAP_TYPE)


def hash_domain(domain: Domain) -> bytes:
    """The domain separator for a signing domain."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                DOMAIN_TYPEHASH,
                keccak(domain.name.encode("utf-8")),
                keccak(domain.version.encode("utf-8")),
                domain.chain_id,
                domain.verifying_contract,
            ],
        )
    )


class StructuredDataEncoder:
    """Deterministic, domain-separated digesting of requests and swap offers.

    Usage:
        encoder = StructuredDataEncoder(domain)
        preimage = encoder.encode_request_preimage(request, nonces)
        digest = encoder.domain_digest(keccak(preimage))
        assert digest == encoder.request_digest(request, nonces)
    """

    def __init__(self, domain: Domain) -> None:
        self._domain = domain
        self._separator = hash_domain(domain)

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def domain_separator(self) -> bytes:
        return self._separator

    # ------------------------------------------------------------------
    # Batch requests
    # ------------------------------------------------------------------

    def hash_action(self, action: Action) -> bytes:
        """Fixed-width hash of one action; the payload is hashed first."""
        return keccak(
            encode(
                ["bytes32", "uint8", "address", "uint256", "bytes32"],
                [
                    ACTION_TYPEHASH,
                    int(action.kind),
                    action.target,
                    action.value,
                    keccak(action.payload),
                ],
            )
        )

    def hash_action_list(self, actions: Sequence[Action]) -> bytes:
        """Order-sensitive hash over the concatenated action hashes."""
        return keccak(b"".join(self.hash_action(action) for action in actions))

    def hash_signers(self, signers: Sequence[str]) -> bytes:
        return keccak(b"".join(encode(["address"], [s]) for s in signers))

    def hash_nonces(self, nonces: Sequence[int]) -> bytes:
        return keccak(b"".join(encode(["uint256"], [n]) for n in nonces))

    def encode_request_preimage(
        self,
        request: AuthorizationRequest,
        nonces: Sequence[int],
    ) -> bytes:
        """The exact bytes whose keccak is the request struct hash.

        ``nonces`` must be aligned with ``request.signers``. Off-core
        signers use this to reproduce what ``run`` hashes internally.
        """
        if len(nonces) != len(request.signers):
            raise ValueError(
                f"Nonce snapshot has {len(nonces)} entries "
                f"for {len(request.signers)} signers"
            )
        return encode(
            ["bytes32", "bytes32", "bytes32", "bytes32", "uint256"],
            [
                ACTIONS_TYPEHASH,
                self.hash_action_list(request.actions),
                self.hash_signers(request.signers),
                self.hash_nonces(nonces),
                request.deadline,
            ],
        )

    def hash_request(self, request: AuthorizationRequest, nonces: Sequence[int]) -> bytes:
        return keccak(self.encode_request_preimage(request, nonces))

    def request_digest(self, request: AuthorizationRequest, nonces: Sequence[int]) -> bytes:
        return self.domain_digest(self.hash_request(request, nonces))

    # ------------------------------------------------------------------
    # Swap offers
    # ------------------------------------------------------------------

    def encode_swap_preimage(self, offer: SwapOffer) -> bytes:
        return encode(
            ["bytes32"] + ["address"] * 4 + ["uint256"] * 5,
            [
                SWAP_TYPEHASH,
                offer.owner_a,
                offer.owner_b,
                offer.token_a,
                offer.token_b,
                offer.value_a,
                offer.value_b,
                offer.nonce_a,
                offer.nonce_b,
                offer.deadline,
            ],
        )

    def hash_swap(self, offer: SwapOffer) -> bytes:
        return keccak(self.encode_swap_preimage(offer))

    def swap_digest(self, offer: SwapOffer) -> bytes:
        return self.domain_digest(self.hash_swap(offer))

    # ------------------------------------------------------------------
    # Domain binding
    # ------------------------------------------------------------------

    def domain_digest(self, struct_hash: bytes) -> bytes:
        """Bind a struct hash to this encoder's domain."""
        if len(struct_hash) != 32:
            raise ValueError("Struct hash must be 32 bytes")
        return keccak(EIP712_PREFIX + self._separator + struct_hash)


def request_typed_data(
    domain: Domain,
    request: AuthorizationRequest,
    nonces: Sequence[int],
) -> dict[str, Any]:
    """EIP-712 JSON document a wallet signs to authorize ``request``."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            "Action": ACTION_FIELDS,
            "Actions": ACTIONS_FIELDS,
        },
        "primaryType": "Actions",
        "domain": domain.to_dict(),
        "message": request.to_message(nonces),
    }


def swap_typed_data(domain: Domain, offer: SwapOffer) -> dict[str, Any]:
    """EIP-712 JSON document a wallet signs to accept ``offer``."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            "Swap": SWAP_FIELDS,
        },
        "primaryType": "Swap",
        "domain": domain.to_dict(),
        "message": offer.to_message(),
    }
