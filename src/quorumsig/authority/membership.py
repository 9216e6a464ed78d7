"""Membership registry and quorum policy.

The authorized signer set and the minimum-signature threshold are
written once at construction. No mutation primitive is provided: the
only way to change them is a delegated call that rewrites the engine's
storage, and that path is itself quorum-authorized.

Invariants (checked at construction):
- members is non-empty
- 0 < quorum <= |members|
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Iterable, Sequence

from quorumsig.errors import ConfigurationError, InsufficientAuthorization
from quorumsig.models.domain import identity_order, to_identity


MEMBERS_KEY = "members"
QUORUM_KEY = "quorum"


def check_configuration(members: Iterable[str], quorum: int) -> frozenset[str]:
    """Validate a membership/quorum pair and return the normalized set."""
    try:
        normalized = frozenset(to_identity(m) for m in members)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid member: {exc}") from exc
    if not normalized:
        raise ConfigurationError("Membership must not be empty")
    if isinstance(quorum, bool) or not isinstance(quorum, int):
        raise ConfigurationError("Quorum must be an integer")
    if quorum <= 0:
        raise ConfigurationError("Quorum must be > 0")
    if quorum > len(normalized):
        raise ConfigurationError(
            f"Quorum {quorum} exceeds membership size {len(normalized)}"
        )
    return normalized


class MembershipRegistry:
    """Authorized signers and quorum, read live from engine storage.

    Usage:
        registry = MembershipRegistry.initialize(storage, [alice, bob, joe], 2)
        registry.validate_signers([alice, bob], signature_count=2)
    """

    def __init__(self, storage: MutableMapping[Any, Any]) -> None:
        self._storage = storage

    @classmethod
    def initialize(
        cls,
        storage: MutableMapping[Any, Any],
        members: Iterable[str],
        quorum: int,
    ) -> "MembershipRegistry":
        normalized = check_configuration(members, quorum)
        storage[MEMBERS_KEY] = normalized
        storage[QUORUM_KEY] = quorum
        return cls(storage)

    @property
    def members(self) -> frozenset[str]:
        return self._storage.get(MEMBERS_KEY, frozenset())

    @property
    def quorum(self) -> int:
        return self._storage.get(QUORUM_KEY, 0)

    def is_member(self, identity: str) -> bool:
        return identity in self.members

    def validate_signers(self, signers: Sequence[str], signature_count: int) -> None:
        """Check counts, strict ascending order and membership.

        A single pass over adjacent pairs both checks the ordering and
        rejects duplicates: any non-increasing pair fails.

        Raises:
            InsufficientAuthorization: on the first failed check.
        """
        quorum = self.quorum
        if signature_count < quorum:
            raise InsufficientAuthorization(
                signature_count, quorum, "fewer signatures than quorum"
            )
        if signature_count != len(signers):
            raise InsufficientAuthorization(
                signature_count,
                len(signers),
                "signature count does not match signer count",
            )

        members = self.members
        previous = -1
        for signer in signers:
            current = identity_order(signer)
            if current <= previous:
                raise InsufficientAuthorization(
                    signature_count,
                    quorum,
                    f"signer {signer} is out of order or duplicated",
                )
            if signer not in members:
                raise InsufficientAuthorization(
                    signature_count, quorum, f"signer {signer} is not a member"
                )
            previous = current
