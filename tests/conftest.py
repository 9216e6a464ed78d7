"""Shared fixtures: a deterministic world, funded accounts and signing helpers."""

from dataclasses import dataclass
from typing import Callable, Sequence

import pytest
from eth_account import Account

from quorumsig.chain.token import Token
from quorumsig.chain.world import WorldState
from quorumsig.crypto.signatures import sign_typed_data
from quorumsig.engine.batch import BatchExecutor
from quorumsig.engine.swap import SwapEngine
from quorumsig.models.authorization import AuthorizationRequest, SwapOffer
from quorumsig.models.domain import identity_order


NOW = 1_700_000_000
CHAIN_ID = 31337


@dataclass(frozen=True)
class Signer:
    address: str
    key: bytes


def make_signers(count: int, offset: int = 1) -> list[Signer]:
    """Accounts from private keys offset..offset+count-1, sorted by address."""
    signers = []
    for i in range(offset, offset + count):
        key = i.to_bytes(32, "big")
        signers.append(Signer(Account.from_key(key).address, key))
    return sorted(signers, key=lambda s: identity_order(s.address))


@pytest.fixture
def world() -> WorldState:
    return WorldState(chain_id=CHAIN_ID, timestamp=NOW)


@pytest.fixture
def signers() -> list[Signer]:
    """Three members in ascending address order: alice < bob < joe."""
    return make_signers(3)


@pytest.fixture
def alice(signers) -> Signer:
    return signers[0]


@pytest.fixture
def bob(signers) -> Signer:
    return signers[1]


@pytest.fixture
def joe(signers) -> Signer:
    return signers[2]


@pytest.fixture
def outsider() -> Signer:
    return make_signers(1, offset=100)[0]


@pytest.fixture
def receiver() -> str:
    return "0x" + "ab" * 20


@pytest.fixture
def executor(world, signers) -> BatchExecutor:
    return BatchExecutor(world, "MULTISIG_DOMAIN", [s.address for s in signers], quorum=2)


@pytest.fixture
def funded_token(world, executor) -> Token:
    """A token whose whole supply is held by the executor."""
    return Token.deploy(world, "Token A", "TKA", 1_000, executor.address)


@pytest.fixture
def swapper(world) -> SwapEngine:
    return SwapEngine(world, "SwapperDomain")


@pytest.fixture
def sign_request() -> Callable[..., list[bytes]]:
    """Sign ``request`` against the executor's current nonces."""
    def _sign(
        engine: BatchExecutor,
        request: AuthorizationRequest,
        keys: Sequence[Signer],
    ) -> list[bytes]:
        document = engine.typed_data(request)
        return [sign_typed_data(document, signer.key) for signer in keys]
    return _sign


@pytest.fixture
def sign_swap() -> Callable[..., bytes]:
    def _sign(engine: SwapEngine, offer: SwapOffer, signer: Signer) -> bytes:
        return sign_typed_data(engine.typed_data(offer), signer.key)
    return _sign
