"""Authorization engines — the n-party batch executor and the two-party swap."""

from quorumsig.engine.batch import BatchExecutor
from quorumsig.engine.lifecycle import LifecycleError, RequestLifecycle
from quorumsig.engine.swap import SwapEngine

__all__ = ["BatchExecutor", "LifecycleError", "RequestLifecycle", "SwapEngine"]
