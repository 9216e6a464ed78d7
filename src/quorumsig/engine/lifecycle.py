"""Request lifecycle — enforces the exact protocol step order.

Transitions are fail-closed: any transition not explicitly allowed is
rejected. The engines advance one lifecycle per request; the history
ends up in the receipt so callers can see every step was taken.
"""

from __future__ import annotations

from quorumsig.models.authorization import RequestState


_ORDER: tuple[RequestState, ...] = (
    RequestState.RECEIVED,
    RequestState.DEADLINE_CHECKED,
    RequestState.SIGNERS_VALIDATED,
    RequestState.NONCES_CONSUMED,
    RequestState.DIGEST_COMPUTED,
    RequestState.SIGNATURES_VERIFIED,
    RequestState.EXECUTING,
    RequestState.COMPLETED,
)

# Legal transitions: (from_state, to_state)
_TRANSITIONS: set[tuple[RequestState, RequestState]] = {
    (current, following) for current, following in zip(_ORDER, _ORDER[1:])
} | {
    (state, RequestState.ABORTED) for state in _ORDER if state != RequestState.COMPLETED
}

TERMINAL_STATES = frozenset({RequestState.COMPLETED, RequestState.ABORTED})


class LifecycleError(Exception):
    """Raised when a lifecycle transition is not allowed."""


class RequestLifecycle:
    """Tracks one request through its protocol states."""

    def __init__(self) -> None:
        self._history: list[RequestState] = [RequestState.RECEIVED]

    @property
    def state(self) -> RequestState:
        return self._history[-1]

    @property
    def history(self) -> tuple[RequestState, ...]:
        return tuple(self._history)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: RequestState) -> None:
        if (self.state, target) not in _TRANSITIONS:
            raise LifecycleError(
                f"Illegal transition: {self.state.value} → {target.value}"
            )
        self._history.append(target)

    def abort(self) -> None:
        """Move to ABORTED; a no-op if the request already aborted."""
        if self.state == RequestState.ABORTED:
            return
        self.advance(RequestState.ABORTED)
