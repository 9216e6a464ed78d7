"""Swap engine — the two-party form of the authorization protocol.

A SwapOffer names both owners, so membership is per request and the
quorum is fixed at two. Ordering mirrors the batch executor exactly:
deadline, then both nonces, then the digest, then both signatures, and
only then the two token transfers. Each owner must have approved the
engine to move the offered amount.

ownerA and ownerB are not required to differ. With a single owner the
two nonce fields are consecutive values of the same counter.
"""

from __future__ import annotations

import logging
from typing import Optional

from quorumsig.authority.nonces import NonceLedger
from quorumsig.chain.abi import decode_result, encode_call
from quorumsig.chain.contract import Contract
from quorumsig.chain.world import ExecutionReverted, WorldState
from quorumsig.crypto.signatures import SignatureVerifier
from quorumsig.crypto.typed_data import StructuredDataEncoder, swap_typed_data
from quorumsig.engine.batch import DEFAULT_DOMAIN_VERSION
from quorumsig.engine.lifecycle import RequestLifecycle
from quorumsig.errors import (
    ActionFailure,
    ConfigurationError,
    ExpiredRequest,
    InsufficientAuthorization,
    RequestAborted,
)
from quorumsig.models.authorization import RequestState, SwapOffer, SwapReceipt
from quorumsig.models.domain import Domain, DomainDescription


logger = logging.getLogger(__name__)

SWAP_QUORUM = 2
TRANSFER_FROM = "transferFrom(address,address,uint256)"


class SwapEngine(Contract):
    """Atomic exchange of two token amounts between two signing owners.

    Usage:
        swapper = SwapEngine(world, "SwapperDomain")
        offer = SwapOffer(bob, alice, token_a.address, token_b.address,
                          value_a=10, value_b=5, deadline=deadline,
                          nonce_a=swapper.nonce_of(bob),
                          nonce_b=swapper.nonce_of(alice))
        swapper.run(offer, bob_signature, alice_signature)
    """

    def __init__(
        self,
        world: WorldState,
        domain_name: str,
        domain_version: str = DEFAULT_DOMAIN_VERSION,
        verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        if not domain_name:
            raise ConfigurationError("Domain name must not be empty")
        address = world.deploy(self, label=f"swap:{domain_name}")
        self._nonces = NonceLedger(world.storage_of(address))
        self._encoder = StructuredDataEncoder(
            Domain(domain_name, domain_version, world.chain_id, address)
        )
        self._verifier = verifier or SignatureVerifier()

    @property
    def domain(self) -> Domain:
        return self._encoder.domain

    @property
    def domain_separator(self) -> bytes:
        return self._encoder.domain_separator

    def eip712_domain(self) -> DomainDescription:
        return self._encoder.domain.describe()

    def nonce_of(self, owner: str) -> int:
        return self._nonces.current(owner)

    def encode_swap_preimage(self, offer: SwapOffer) -> bytes:
        return self._encoder.encode_swap_preimage(offer)

    def swap_digest(self, offer: SwapOffer) -> bytes:
        return self._encoder.swap_digest(offer)

    def typed_data(self, offer: SwapOffer) -> dict:
        return swap_typed_data(self.domain, offer)

    def run(
        self,
        offer: SwapOffer,
        signature_a: Optional[bytes],
        signature_b: Optional[bytes],
    ) -> SwapReceipt:
        """Verify both owners' signatures and perform both transfers atomically.

        Raises:
            ExpiredRequest, InsufficientAuthorization, SignerMismatch,
            ActionFailure: the swap was aborted and nothing persisted.
        """
        lifecycle = RequestLifecycle()
        try:
            with self.world.transaction():
                receipt = self._authorize_and_swap(offer, signature_a, signature_b, lifecycle)
        except RequestAborted as exc:
            failed_in = lifecycle.state
            lifecycle.abort()
            logger.warning("Swap aborted after %s: %s", failed_in.value, exc)
            raise

        logger.info(
            "Swapped %d of %s from %s for %d of %s from %s",
            offer.value_a, offer.token_a, offer.owner_a,
            offer.value_b, offer.token_b, offer.owner_b,
        )
        return receipt

    def _authorize_and_swap(
        self,
        offer: SwapOffer,
        signature_a: Optional[bytes],
        signature_b: Optional[bytes],
        lifecycle: RequestLifecycle,
    ) -> SwapReceipt:
        now = self.world.timestamp
        if now > offer.deadline:
            raise ExpiredRequest(offer.deadline, now)
        lifecycle.advance(RequestState.DEADLINE_CHECKED)

        provided = sum(1 for s in (signature_a, signature_b) if s)
        if provided < SWAP_QUORUM:
            raise InsufficientAuthorization(provided, SWAP_QUORUM, "both owners must sign")
        lifecycle.advance(RequestState.SIGNERS_VALIDATED)

        nonce_a = self._nonces.consume(offer.owner_a)
        nonce_b = self._nonces.consume(offer.owner_b)
        lifecycle.advance(RequestState.NONCES_CONSUMED)

        bound = offer.with_nonces(nonce_a, nonce_b)
        digest = self._encoder.swap_digest(bound)
        lifecycle.advance(RequestState.DIGEST_COMPUTED)

        self._verifier.verify(digest, signature_a, offer.owner_a, 0)
        self._verifier.verify(digest, signature_b, offer.owner_b, 1)
        lifecycle.advance(RequestState.SIGNATURES_VERIFIED)

        lifecycle.advance(RequestState.EXECUTING)
        self._transfer(0, offer.token_a, offer.owner_a, offer.owner_b, offer.value_a)
        self._transfer(1, offer.token_b, offer.owner_b, offer.owner_a, offer.value_b)
        lifecycle.advance(RequestState.COMPLETED)

        return SwapReceipt(
            digest=digest,
            nonce_a=nonce_a,
            nonce_b=nonce_b,
            history=lifecycle.history,
        )

    def _transfer(self, index: int, token: str, owner: str, to: str, amount: int) -> None:
        """Move one leg. The token must have code and must return true."""
        payload = encode_call(TRANSFER_FROM, owner, to, amount)
        try:
            if self.world.code_at(token) is None:
                raise ExecutionReverted(f"{token} has no code")
            result = self.world.call(self.address, token, payload)
            if not result or not decode_result(["bool"], result)[0]:
                raise ExecutionReverted(f"{token} did not return true from transferFrom")
        except Exception as exc:
            raise ActionFailure(index, exc) from exc
