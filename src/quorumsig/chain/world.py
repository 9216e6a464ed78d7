"""In-process host environment — accounts, storage, calls and atomic commits.

The engines in this package never implement atomicity themselves. They
rely on ``WorldState.transaction()``, which snapshots every account
before a unit of work and restores it in place if the unit raises.
Transactions nest: every call frame is its own sub-transaction, so a
reverted inner call undoes only its own effects unless the exception
keeps propagating.

Restores happen in place (the same dict objects are cleared and
refilled) so storage views held by frames further up the stack stay
valid after an inner revert.

All transactions are guarded by one re-entrant lock: concurrent threads
are serialized against the shared state, while code running inside a
transaction can re-enter the world (and the engines) on the same thread.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Optional

from web3 import Web3

from quorumsig.models.domain import to_identity

if TYPE_CHECKING:
    from quorumsig.chain.contract import Contract


logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 31337


class ExecutionReverted(Exception):
    """Raised by contract code (or the host) to revert the current call."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class StaticCallViolation(ExecutionReverted):
    """A state change was attempted inside a static call."""


class InsufficientBalance(ExecutionReverted):
    """A native value transfer exceeded the sender's balance."""


@dataclass(frozen=True)
class LogEntry:
    """An event emitted by contract code."""
    address: str
    event: str
    args: dict[str, Any]


class Storage(MutableMapping):
    """Keyed storage of one account, as seen by an executing frame.

    Inside a static call every write raises StaticCallViolation.
    """

    def __init__(self, data: dict[Any, Any], read_only: bool = False) -> None:
        self._data = data
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        if self._read_only:
            raise StaticCallViolation(f"storage write to {key!r} in static call")
        self._data[key] = value

    def __delitem__(self, key: Any) -> None:
        if self._read_only:
            raise StaticCallViolation(f"storage delete of {key!r} in static call")
        del self._data[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class AccountState:
    """Native balance, keyed storage and optional code of one address."""
    balance: int = 0
    storage: dict[Any, Any] = field(default_factory=dict)
    code: Optional["Contract"] = None


@dataclass
class CallContext:
    """What a frame of contract code can see and do.

    ``this`` is the address whose storage and identity the code runs as.
    For a delegated call that is the caller, not the code's own address.
    """
    world: "WorldState"
    sender: str
    this: str
    value: int
    static: bool
    storage: Storage

    def call(self, target: str, payload: bytes = b"", value: int = 0) -> bytes:
        """Call another account as ``this``; static-ness is inherited."""
        return self.world.call(self.this, target, payload, value=value, static=self.static)

    def emit(self, event: str, **args: Any) -> None:
        if self.static:
            raise StaticCallViolation(f"event {event} emitted in static call")
        self.world.emit(self.this, event, args)


@dataclass
class _Snapshot:
    accounts: dict[str, tuple[int, dict[Any, Any], Optional["Contract"]]]
    log_length: int


class WorldState:
    """Shared execution environment: accounts, chain id, clock and event log.

    Usage:
        world = WorldState(chain_id=31337, timestamp=1_700_000_000)
        token_address = world.deploy(token)
        with world.transaction():
            world.call(sender, token_address, payload)
            # any exception here restores every account and the log
    """

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        timestamp: Optional[int] = None,
    ) -> None:
        self.chain_id = chain_id
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        self._accounts: dict[str, AccountState] = {}
        self._logs: list[LogEntry] = []
        self._deployments = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def account(self, address: str) -> AccountState:
        """Return the account at ``address``, creating an empty one if needed."""
        return self._accounts.setdefault(to_identity(address), AccountState())

    def balance_of(self, address: str) -> int:
        account = self._accounts.get(to_identity(address))
        return account.balance if account is not None else 0

    def storage_of(self, address: str) -> dict[Any, Any]:
        """The live storage dict of ``address`` (not a copy)."""
        return self.account(address).storage

    def code_at(self, address: str) -> Optional["Contract"]:
        account = self._accounts.get(to_identity(address))
        return account.code if account is not None else None

    def fund(self, address: str, amount: int) -> None:
        """Credit native value out of thin air (genesis allocation, tests)."""
        if amount < 0:
            raise ValueError("Funding amount must be >= 0")
        with self.transaction():
            self.account(address).balance += amount

    def advance_time(self, seconds: int) -> int:
        self.timestamp += seconds
        return self.timestamp

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        return tuple(self._logs)

    def emit(self, address: str, event: str, args: dict[str, Any]) -> None:
        self._logs.append(LogEntry(address=to_identity(address), event=event, args=dict(args)))

    def deploy(self, contract: "Contract", label: Optional[str] = None) -> str:
        """Place ``contract`` at a fresh deterministic address and return it."""
        with self.transaction():
            self._deployments += 1
            seed = f"{label or type(contract).__name__}:{self._deployments}"
            address = to_identity("0x" + bytes(Web3.keccak(text=seed))[-20:].hex())
            account = self.account(address)
            if account.code is not None:
                raise ValueError(f"Address already holds code: {address}")
            account.code = contract
            contract.bind(self, address)
            logger.debug("Deployed %s at %s", type(contract).__name__, address)
            return address

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit every effect of the block, or none of them."""
        with self._lock:
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise

    def _snapshot(self) -> _Snapshot:
        """Copy every account's balance, storage and code.

        Each call frame opens a transaction, so a frame costs time
        proportional to the total storage in the world, not to what the
        frame touches. Worlds here hold a handful of contracts.
        TODO: journal first writes per touched account if worlds grow large.
        """
        return _Snapshot(
            accounts={
                address: (account.balance, copy.deepcopy(account.storage), account.code)
                for address, account in self._accounts.items()
            },
            log_length=len(self._logs),
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        for address in list(self._accounts):
            if address not in snapshot.accounts:
                del self._accounts[address]
        for address, (balance, storage, code) in snapshot.accounts.items():
            account = self._accounts[address]
            account.balance = balance
            account.code = code
            account.storage.clear()
            account.storage.update(storage)
        del self._logs[snapshot.log_length:]

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def transfer(self, sender: str, recipient: str, value: int) -> None:
        """Move native value between accounts."""
        if value < 0:
            raise ValueError("Transfer value must be >= 0")
        if value == 0:
            return
        with self.transaction():
            source = self.account(sender)
            if source.balance < value:
                raise InsufficientBalance(
                    f"{to_identity(sender)} holds {source.balance}, needs {value}"
                )
            source.balance -= value
            self.account(recipient).balance += value

    def call(
        self,
        sender: str,
        target: str,
        payload: bytes = b"",
        value: int = 0,
        static: bool = False,
    ) -> bytes:
        """Invoke ``target`` as ``sender``, attaching ``value``.

        Calls to accounts without code only move value. Returns the
        callee's ABI-encoded return data.
        """
        sender = to_identity(sender)
        target = to_identity(target)
        if static and value:
            raise StaticCallViolation("value transfer in static call")
        with self.transaction():
            self.transfer(sender, target, value)
            code = self.code_at(target)
            if code is None:
                return b""
            ctx = CallContext(
                world=self,
                sender=sender,
                this=target,
                value=value,
                static=static,
                storage=Storage(self.account(target).storage, read_only=static),
            )
            return code.execute(ctx, bytes(payload))

    def static_call(self, sender: str, target: str, payload: bytes = b"") -> bytes:
        """Invoke ``target`` with every state change forbidden."""
        return self.call(sender, target, payload, static=True)

    def delegate_call(
        self,
        context: str,
        target: str,
        payload: bytes = b"",
        sender: Optional[str] = None,
    ) -> bytes:
        """Run ``target``'s code against ``context``'s storage and identity.

        The callee sees ``this == context`` and may rewrite anything the
        context account keeps in storage.
        """
        context = to_identity(context)
        code = self.code_at(target)
        if code is None:
            return b""
        with self.transaction():
            ctx = CallContext(
                world=self,
                sender=to_identity(sender) if sender is not None else context,
                this=context,
                value=0,
                static=False,
                storage=Storage(self.account(context).storage),
            )
            return code.execute(ctx, bytes(payload))
