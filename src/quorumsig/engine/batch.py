"""Batch executor — quorum-authorized, atomic execution of an ordered action list.

Protocol for ``run(request, signatures)``:
1. Reject if the block timestamp is past the deadline.
2. Reject if signatures < quorum or signatures != signers.
3. Reject unsorted, duplicated or non-member signers.
4. Consume one nonce per signer, in list order.
5. Digest the actions, signers, consumed nonces and deadline under
   the engine's domain.
6. Recover every signature; the first mismatch aborts.
7. Execute the actions strictly in list order.
8. Commit everything together.

Nonces are consumed (step 4) before signatures are checked (step 6)
because they are part of the signed content. That ordering is also the
reentrancy guard: a target that re-enters ``run`` with the in-flight
request finds the nonces already advanced, so the digest it produces
matches no signature. The ordering relies on the host transaction
discarding the nonce advances whenever a later step fails.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from quorumsig.authority.membership import MembershipRegistry, check_configuration
from quorumsig.authority.nonces import NonceLedger
from quorumsig.chain.contract import Contract
from quorumsig.chain.world import CallContext, ExecutionReverted, WorldState
from quorumsig.crypto.signatures import SignatureVerifier
from quorumsig.crypto.typed_data import StructuredDataEncoder, request_typed_data
from quorumsig.engine.lifecycle import RequestLifecycle
from quorumsig.errors import (
    ActionFailure,
    ConfigurationError,
    ExpiredRequest,
    RequestAborted,
    ValueTransferFailure,
)
from quorumsig.models.authorization import (
    Action,
    ActionKind,
    AuthorizationRequest,
    ExecutionReceipt,
    RequestState,
)
from quorumsig.models.domain import Domain, DomainDescription, to_identity


logger = logging.getLogger(__name__)

DEFAULT_DOMAIN_VERSION = "1"


class BatchExecutor(Contract):
    """The general n-party engine, deployed as an account in a WorldState.

    Tokens and native value held by the engine's address are what its
    actions spend.

    Usage:
        engine = BatchExecutor(world, "MULTISIG_DOMAIN", [alice, bob, joe], quorum=2)
        nonces = engine.nonce_snapshot(request.signers)
        document = engine.typed_data(request, nonces)   # signed off-core
        receipt = engine.run(request, [alice_sig, bob_sig])
    """

    def __init__(
        self,
        world: WorldState,
        domain_name: str,
        members: Sequence[str],
        quorum: int,
        domain_version: str = DEFAULT_DOMAIN_VERSION,
        verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        if not domain_name:
            raise ConfigurationError("Domain name must not be empty")
        check_configuration(members, quorum)

        with world.transaction():
            address = world.deploy(self, label=f"batch:{domain_name}")
            storage = world.storage_of(address)
            self._membership = MembershipRegistry.initialize(storage, members, quorum)
        self._nonces = NonceLedger(storage)
        self._encoder = StructuredDataEncoder(
            Domain(domain_name, domain_version, world.chain_id, address)
        )
        self._verifier = verifier or SignatureVerifier()
        self._dispatch: dict[ActionKind, Callable[[Action, str], bytes]] = {
            ActionKind.CALL: self._value_call,
            ActionKind.DELEGATE_CALL: self._delegated_call,
            ActionKind.STATIC_CALL: self._read_only_call,
        }
        logger.info(
            "Batch executor %s deployed: %d members, quorum %d",
            address, len(self._membership.members), quorum,
        )

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------

    @property
    def domain(self) -> Domain:
        return self._encoder.domain

    @property
    def domain_separator(self) -> bytes:
        return self._encoder.domain_separator

    def eip712_domain(self) -> DomainDescription:
        return self._encoder.domain.describe()

    @property
    def members(self) -> frozenset[str]:
        return self._membership.members

    @property
    def quorum(self) -> int:
        return self._membership.quorum

    def nonce_of(self, signer: str) -> int:
        return self._nonces.current(signer)

    def nonce_snapshot(self, signers: Sequence[str]) -> tuple[int, ...]:
        """Current nonces for ``signers``: the values ``run`` will consume."""
        return tuple(self._nonces.current(signer) for signer in signers)

    def encode_request_preimage(
        self,
        request: AuthorizationRequest,
        nonces: Sequence[int],
    ) -> bytes:
        return self._encoder.encode_request_preimage(request, nonces)

    def request_digest(self, request: AuthorizationRequest, nonces: Sequence[int]) -> bytes:
        return self._encoder.request_digest(request, nonces)

    def typed_data(
        self,
        request: AuthorizationRequest,
        nonces: Optional[Sequence[int]] = None,
    ) -> dict:
        """EIP-712 document for ``request``; defaults to the current nonces."""
        if nonces is None:
            nonces = self.nonce_snapshot(request.signers)
        return request_typed_data(self.domain, request, nonces)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        request: AuthorizationRequest,
        signatures: Sequence[bytes],
        *,
        sender: Optional[str] = None,
        value: int = 0,
    ) -> ExecutionReceipt:
        """Authorize and execute ``request`` as one atomic unit.

        ``value`` native units are moved from ``sender`` to the engine
        inside the same unit, before any action runs.

        Raises:
            ExpiredRequest, InsufficientAuthorization, SignerMismatch,
            ActionFailure, ValueTransferFailure: the request was aborted
            and nothing persisted.
        """
        signatures = tuple(signatures)
        caller = to_identity(sender) if sender is not None else self.address
        if value and sender is None:
            raise ValueError("Attaching value requires a sender")

        lifecycle = RequestLifecycle()
        try:
            with self.world.transaction():
                self._attach_value(caller, value)
                receipt = self._authorize_and_execute(request, signatures, lifecycle, caller)
        except RequestAborted as exc:
            failed_in = lifecycle.state
            lifecycle.abort()
            logger.warning("Request aborted after %s: %s", failed_in.value, exc)
            raise

        logger.info(
            "Executed %d actions for %d signers (digest 0x%s)",
            len(request.actions), len(request.signers), receipt.digest.hex(),
        )
        return receipt

    def _authorize_and_execute(
        self,
        request: AuthorizationRequest,
        signatures: tuple[bytes, ...],
        lifecycle: RequestLifecycle,
        caller: str,
    ) -> ExecutionReceipt:
        now = self.world.timestamp
        if now > request.deadline:
            raise ExpiredRequest(request.deadline, now)
        lifecycle.advance(RequestState.DEADLINE_CHECKED)

        self._membership.validate_signers(request.signers, len(signatures))
        lifecycle.advance(RequestState.SIGNERS_VALIDATED)

        nonces = self._nonces.consume_all(request.signers)
        lifecycle.advance(RequestState.NONCES_CONSUMED)

        bound = request.with_nonces(nonces)
        digest = self._encoder.request_digest(bound, bound.nonces)
        lifecycle.advance(RequestState.DIGEST_COMPUTED)
        logger.debug("Request digest 0x%s for nonces %s", digest.hex(), nonces)

        for index, (signer, signature) in enumerate(zip(bound.signers, signatures)):
            self._verifier.verify(digest, signature, signer, index)
        lifecycle.advance(RequestState.SIGNATURES_VERIFIED)

        lifecycle.advance(RequestState.EXECUTING)
        results = []
        for index, action in enumerate(bound.actions):
            results.append(self._execute(index, action, caller))
        lifecycle.advance(RequestState.COMPLETED)

        return ExecutionReceipt(
            digest=digest,
            signers=bound.signers,
            nonces=nonces,
            results=tuple(results),
            history=lifecycle.history,
        )

    def _attach_value(self, caller: str, value: int) -> None:
        try:
            self.world.transfer(caller, self.address, value)
        except ExecutionReverted as exc:
            raise ValueTransferFailure(caller, value, exc) from exc

    def _execute(self, index: int, action: Action, caller: str) -> bytes:
        logger.debug("Action %d: %s → %s", index, action.kind.name, action.target)
        try:
            return self._dispatch[action.kind](action, caller)
        except Exception as exc:
            # Target code is foreign; any error it raises aborts the batch.
            raise ActionFailure(index, exc) from exc

    def _value_call(self, action: Action, caller: str) -> bytes:
        return self.world.call(self.address, action.target, action.payload, value=action.value)

    def _delegated_call(self, action: Action, caller: str) -> bytes:
        # Runs foreign code with write access to membership, quorum and nonces.
        logger.warning(
            "Delegated call into %s executes against engine %s storage",
            action.target, self.address,
        )
        return self.world.delegate_call(self.address, action.target, action.payload, sender=caller)

    def _read_only_call(self, action: Action, caller: str) -> bytes:
        return self.world.static_call(self.address, action.target, action.payload)

    def receive(self, ctx: CallContext) -> bytes:
        """Accept plain value transfers so the engine can be funded."""
        return b""
