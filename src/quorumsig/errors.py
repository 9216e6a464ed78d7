"""Error taxonomy for request authorization and execution.

Every ``RequestAborted`` means the whole request was discarded: no
action effect and no nonce advance survives. The engine never retries;
resubmitting with a fresh nonce snapshot is the caller's job.
"""

from __future__ import annotations

from typing import Optional


class ConfigurationError(ValueError):
    """Raised when an engine is constructed with an invalid configuration."""


class RequestAborted(Exception):
    """Base class for every failure that aborts a request."""


class ExpiredRequest(RequestAborted):
    """The block timestamp is past the request deadline."""

    def __init__(self, deadline: int, now: int) -> None:
        self.deadline = deadline
        self.now = now
        super().__init__(f"Request expired: deadline {deadline} < now {now}")


class InsufficientAuthorization(RequestAborted):
    """Signature count, signer ordering or membership checks failed.

    ``provided`` is the number of signatures submitted; ``required`` is
    the number the check demanded (quorum, or the signer count when the
    two lists disagree).
    """

    def __init__(self, provided: int, required: int, reason: str) -> None:
        self.provided = provided
        self.required = required
        self.reason = reason
        super().__init__(
            f"Insufficient authorization ({provided}/{required}): {reason}"
        )


class SignerMismatch(RequestAborted):
    """A signature did not recover to the signer at its position.

    ``recovered`` is None when the signature could not be recovered at
    all. Both cases are the same failure.
    """

    def __init__(self, recovered: Optional[str], expected: str, index: int) -> None:
        self.recovered = recovered
        self.expected = expected
        self.index = index
        super().__init__(
            f"Signature {index} recovered {recovered or 'nothing'}, "
            f"expected {expected}"
        )


class ActionFailure(RequestAborted):
    """The action at ``index`` failed; the batch was rolled back."""

    def __init__(self, index: int, cause: Optional[BaseException] = None) -> None:
        self.index = index
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Action {index} failed{detail}")


class ValueTransferFailure(RequestAborted):
    """Native value attached to a request could not be moved to the engine."""

    def __init__(self, sender: str, value: int, cause: Optional[BaseException] = None) -> None:
        self.sender = sender
        self.value = value
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Attaching {value} from {sender} failed{detail}")
