"""quorumsig — quorum-authorized batch execution and two-party swaps.

Signers authorize work off-core by signing EIP-712 structured digests.
An engine recovers the signatures, checks membership, quorum, ordering,
deadline and per-signer nonces, and executes the authorized actions as
one atomic unit.
"""

__version__ = "0.1.0"
