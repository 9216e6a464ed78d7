"""Tests for the request lifecycle — proves the protocol step order is enforced."""

import pytest

from quorumsig.engine.lifecycle import LifecycleError, RequestLifecycle
from quorumsig.models.authorization import RequestState


STEPS = [
    RequestState.DEADLINE_CHECKED,
    RequestState.SIGNERS_VALIDATED,
    RequestState.NONCES_CONSUMED,
    RequestState.DIGEST_COMPUTED,
    RequestState.SIGNATURES_VERIFIED,
    RequestState.EXECUTING,
    RequestState.COMPLETED,
]


class TestRequestLifecycle:
    def test_starts_received(self) -> None:
        lifecycle = RequestLifecycle()
        assert lifecycle.state == RequestState.RECEIVED
        assert not lifecycle.terminal

    def test_full_order_completes(self) -> None:
        lifecycle = RequestLifecycle()
        for step in STEPS:
            lifecycle.advance(step)
        assert lifecycle.terminal
        assert lifecycle.history == (RequestState.RECEIVED, *STEPS)

    def test_skipping_a_step_rejected(self) -> None:
        lifecycle = RequestLifecycle()
        lifecycle.advance(RequestState.DEADLINE_CHECKED)
        with pytest.raises(LifecycleError):
            lifecycle.advance(RequestState.NONCES_CONSUMED)

    def test_verifying_before_nonces_rejected(self) -> None:
        lifecycle = RequestLifecycle()
        lifecycle.advance(RequestState.DEADLINE_CHECKED)
        lifecycle.advance(RequestState.SIGNERS_VALIDATED)
        with pytest.raises(LifecycleError):
            lifecycle.advance(RequestState.SIGNATURES_VERIFIED)

    def test_abort_from_any_open_state(self) -> None:
        for taken in range(len(STEPS)):
            lifecycle = RequestLifecycle()
            for step in STEPS[:taken]:
                lifecycle.advance(step)
            lifecycle.abort()
            assert lifecycle.state == RequestState.ABORTED

    def test_abort_is_idempotent(self) -> None:
        lifecycle = RequestLifecycle()
        lifecycle.abort()
        lifecycle.abort()
        assert lifecycle.history == (RequestState.RECEIVED, RequestState.ABORTED)

    def test_completed_cannot_abort(self) -> None:
        lifecycle = RequestLifecycle()
        for step in STEPS:
            lifecycle.advance(step)
        with pytest.raises(LifecycleError):
            lifecycle.abort()

    def test_aborted_cannot_resume(self) -> None:
        lifecycle = RequestLifecycle()
        lifecycle.abort()
        with pytest.raises(LifecycleError):
            lifecycle.advance(RequestState.DEADLINE_CHECKED)
