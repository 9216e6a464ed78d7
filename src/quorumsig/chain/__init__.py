"""Host environment — world state, contract dispatch and the token asset."""

from quorumsig.chain.abi import decode_result, encode_call, function_selector
from quorumsig.chain.contract import Contract, external
from quorumsig.chain.token import Token
from quorumsig.chain.world import (
    CallContext,
    ExecutionReverted,
    InsufficientBalance,
    LogEntry,
    StaticCallViolation,
    Storage,
    WorldState,
)

__all__ = [
    "CallContext",
    "Contract",
    "ExecutionReverted",
    "InsufficientBalance",
    "LogEntry",
    "StaticCallViolation",
    "Storage",
    "Token",
    "WorldState",
    "decode_result",
    "encode_call",
    "external",
    "function_selector",
]
