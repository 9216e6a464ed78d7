"""Signing authority — membership, quorum and replay nonces."""

from quorumsig.authority.membership import MembershipRegistry, check_configuration
from quorumsig.authority.nonces import NonceLedger

__all__ = ["MembershipRegistry", "NonceLedger", "check_configuration"]
