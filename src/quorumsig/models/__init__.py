"""Core data models for quorumsig."""

from quorumsig.models.authorization import (
    Action,
    ActionKind,
    AuthorizationRequest,
    ExecutionReceipt,
    RequestState,
    SwapOffer,
    SwapReceipt,
)
from quorumsig.models.domain import (
    Domain,
    DomainDescription,
    ZERO_IDENTITY,
    identity_order,
    sort_identities,
    to_identity,
)

__all__ = [
    "Action",
    "ActionKind",
    "AuthorizationRequest",
    "ExecutionReceipt",
    "RequestState",
    "SwapOffer",
    "SwapReceipt",
    "Domain",
    "DomainDescription",
    "ZERO_IDENTITY",
    "identity_order",
    "sort_identities",
    "to_identity",
]
