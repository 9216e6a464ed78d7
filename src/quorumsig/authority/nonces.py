"""Per-signer replay counters.

No "used" flag is kept. A digest embeds the nonce a signer held when
the request was validated; once that nonce is consumed it can never be
produced again, so a replayed signature fails digest reconstruction
rather than an explicit lookup.

Counters live in the engine account's storage. The host's transaction
rollback is therefore what undoes an advance when a later step fails.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Sequence

from quorumsig.models.domain import to_identity


def _nonce_key(signer: str) -> tuple[str, str]:
    return ("nonce", signer)


class NonceLedger:
    """Monotonic, gapless counters keyed by signer identity.

    Usage:
        ledger = NonceLedger(world.storage_of(engine_address))
        ledger.current(alice)        # 0
        ledger.consume(alice)        # 0, counter is now 1
    """

    def __init__(self, storage: MutableMapping[Any, Any]) -> None:
        self._storage = storage

    def current(self, signer: str) -> int:
        """The nonce the signer's next request must embed."""
        return self._storage.get(_nonce_key(to_identity(signer)), 0)

    def consume(self, signer: str) -> int:
        """Return the signer's current counter, then increment it."""
        key = _nonce_key(to_identity(signer))
        value = self._storage.get(key, 0)
        self._storage[key] = value + 1
        return value

    def consume_all(self, signers: Sequence[str]) -> tuple[int, ...]:
        """Consume one nonce per signer, in list order."""
        return tuple(self.consume(signer) for signer in signers)
