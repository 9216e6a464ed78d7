"""Authorization request models — actions, batch requests, swap offers, receipts.

Requests are not persisted objects. The engine binds the signer nonces
it consumed into a copy of the request before digesting; any nonces a
caller supplies are only a snapshot for off-core signers and are never
trusted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

from quorumsig.models.domain import to_identity


UINT256_MAX = 2**256 - 1


class ActionKind(enum.IntEnum):
    """How an action's target is invoked.

    DELEGATE_CALL runs foreign code against the engine's own storage and
    identity. It can rewrite membership, quorum and nonces, so it is a
    higher trust tier than the other two kinds.
    """
    CALL = 0
    DELEGATE_CALL = 1
    STATIC_CALL = 2

    @classmethod
    def parse(cls, value: Any) -> "ActionKind":
        """Accept an ActionKind, its integer code, or its lowercase name."""
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown action kind: {value!r}") from None
        return cls(value)


class RequestState(str, enum.Enum):
    """Lifecycle of a single request inside an engine.

    RECEIVED → DEADLINE_CHECKED → SIGNERS_VALIDATED → NONCES_CONSUMED
    → DIGEST_COMPUTED → SIGNATURES_VERIFIED → EXECUTING → COMPLETED,
    with ABORTED reachable from every non-terminal state.
    """
    RECEIVED = "received"
    DEADLINE_CHECKED = "deadline_checked"
    SIGNERS_VALIDATED = "signers_validated"
    NONCES_CONSUMED = "nonces_consumed"
    DIGEST_COMPUTED = "digest_computed"
    SIGNATURES_VERIFIED = "signatures_verified"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ABORTED = "aborted"


def _check_uint256(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} must fit in uint256")


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


@dataclass(frozen=True)
class Action:
    """One signed operation. Position in the list is part of the signed content."""
    kind: ActionKind
    target: str
    value: int = 0
    payload: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ActionKind.parse(self.kind))
        object.__setattr__(self, "target", to_identity(self.target))
        object.__setattr__(self, "payload", _to_bytes(self.payload))
        _check_uint256("Action value", self.value)

    def to_message(self) -> dict[str, Any]:
        return {
            "actionType": int(self.kind),
            "target": self.target,
            "value": self.value,
            "payload": self.payload,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.name.lower(),
            "target": self.target,
            "value": self.value,
            "payload": "0x" + self.payload.hex(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Action":
        return Action(
            kind=ActionKind.parse(data["kind"]),
            target=data["target"],
            value=int(data.get("value", 0)),
            payload=data.get("payload", b""),
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """A batch of actions to be authorized by a quorum of members.

    ``nonces`` is empty on requests built by callers. The engine fills
    it with the counters it consumed (see ``with_nonces``).
    """
    actions: tuple[Action, ...]
    signers: tuple[str, ...]
    deadline: int
    nonces: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", tuple(self.actions))
        object.__setattr__(
            self, "signers", tuple(to_identity(s) for s in self.signers)
        )
        object.__setattr__(self, "nonces", tuple(self.nonces))
        _check_uint256("Request deadline", self.deadline)
        for nonce in self.nonces:
            _check_uint256("Nonce", nonce)
        if self.nonces and len(self.nonces) != len(self.signers):
            raise ValueError(
                f"Nonce snapshot has {len(self.nonces)} entries "
                f"for {len(self.signers)} signers"
            )

    def with_nonces(self, nonces: Sequence[int]) -> "AuthorizationRequest":
        """Return a copy bound to a nonce snapshot aligned with ``signers``."""
        return replace(self, nonces=tuple(nonces))

    def to_message(self, nonces: Sequence[int]) -> dict[str, Any]:
        """The EIP-712 ``Actions`` message for a given nonce snapshot."""
        if len(nonces) != len(self.signers):
            raise ValueError(
                f"Nonce snapshot has {len(nonces)} entries "
                f"for {len(self.signers)} signers"
            )
        return {
            "list": [action.to_message() for action in self.actions],
            "signers": list(self.signers),
            "nonceOfSigner": list(nonces),
            "deadline": self.deadline,
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "actions": [action.to_dict() for action in self.actions],
            "signers": list(self.signers),
            "deadline": self.deadline,
        }
        if self.nonces:
            data["nonces"] = list(self.nonces)
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "AuthorizationRequest":
        return AuthorizationRequest(
            actions=tuple(Action.from_dict(a) for a in data.get("actions", [])),
            signers=tuple(data.get("signers", [])),
            deadline=int(data["deadline"]),
            nonces=tuple(int(n) for n in data.get("nonces", [])),
        )


@dataclass(frozen=True)
class SwapOffer:
    """Fixed-shape two-party exchange.

    owner_a sends value_a of token_a to owner_b; owner_b sends value_b of
    token_b to owner_a. The nonce fields are the signers' snapshot; the
    swap engine overwrites them with the counters it consumes.
    """
    owner_a: str
    owner_b: str
    token_a: str
    token_b: str
    value_a: int
    value_b: int
    deadline: int
    nonce_a: int = 0
    nonce_b: int = 0

    def __post_init__(self) -> None:
        for name in ("owner_a", "owner_b", "token_a", "token_b"):
            object.__setattr__(self, name, to_identity(getattr(self, name)))
        for name in ("value_a", "value_b", "deadline", "nonce_a", "nonce_b"):
            _check_uint256(name, getattr(self, name))

    def with_nonces(self, nonce_a: int, nonce_b: int) -> "SwapOffer":
        return replace(self, nonce_a=nonce_a, nonce_b=nonce_b)

    def to_message(self) -> dict[str, Any]:
        """The EIP-712 ``Swap`` message."""
        return {
            "ownerA": self.owner_a,
            "ownerB": self.owner_b,
            "tokenA": self.token_a,
            "tokenB": self.token_b,
            "valueA": self.value_a,
            "valueB": self.value_b,
            "nonceOwnerA": self.nonce_a,
            "nonceOwnerB": self.nonce_b,
            "deadline": self.deadline,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_a": self.owner_a,
            "owner_b": self.owner_b,
            "token_a": self.token_a,
            "token_b": self.token_b,
            "value_a": self.value_a,
            "value_b": self.value_b,
            "deadline": self.deadline,
            "nonce_a": self.nonce_a,
            "nonce_b": self.nonce_b,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SwapOffer":
        return SwapOffer(
            owner_a=data["owner_a"],
            owner_b=data["owner_b"],
            token_a=data["token_a"],
            token_b=data["token_b"],
            value_a=int(data["value_a"]),
            value_b=int(data["value_b"]),
            deadline=int(data["deadline"]),
            nonce_a=int(data.get("nonce_a", 0)),
            nonce_b=int(data.get("nonce_b", 0)),
        )


@dataclass(frozen=True)
class ExecutionReceipt:
    """Outcome of a completed batch request."""
    digest: bytes
    signers: tuple[str, ...]
    nonces: tuple[int, ...]
    results: tuple[bytes, ...]
    history: tuple[RequestState, ...] = field(default_factory=tuple)

    @property
    def state(self) -> RequestState:
        return self.history[-1] if self.history else RequestState.RECEIVED


@dataclass(frozen=True)
class SwapReceipt:
    """Outcome of a completed swap."""
    digest: bytes
    nonce_a: int
    nonce_b: int
    history: tuple[RequestState, ...] = field(default_factory=tuple)
