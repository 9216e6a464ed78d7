"""ERC-20 style fungible token used as an action and swap target."""

from __future__ import annotations

from typing import TYPE_CHECKING

from quorumsig.chain.abi import encode_call
from quorumsig.chain.contract import Contract, external
from quorumsig.chain.world import CallContext, ExecutionReverted
from quorumsig.models.domain import ZERO_IDENTITY, to_identity

if TYPE_CHECKING:
    from quorumsig.chain.world import WorldState


TOTAL_SUPPLY = "total_supply"


def _balance_key(owner: str) -> tuple[str, str]:
    return ("balance", owner)


def _allowance_key(owner: str, spender: str) -> tuple[str, str, str]:
    return ("allowance", owner, spender)


class Token(Contract):
    """Fungible asset with transfer, approve and transferFrom.

    Usage:
        token = Token.deploy(world, "TokenA", "TKA", 1000 * 10**18, owner)
        payload = token.transfer_payload(alice, 10 * 10**18)
        world.call(owner, token.address, payload)
        token.balance_of(alice)
    """

    def __init__(self, name: str, symbol: str, decimals: int = 18) -> None:
        self.name = name
        self.symbol = symbol
        self.decimals = decimals

    @classmethod
    def deploy(
        cls,
        world: "WorldState",
        name: str,
        symbol: str,
        initial_supply: int,
        owner: str,
    ) -> "Token":
        """Deploy a token and mint ``initial_supply`` to ``owner``."""
        token = cls(name, symbol)
        with world.transaction():
            address = world.deploy(token, label=f"token:{symbol}")
            storage = world.storage_of(address)
            owner = to_identity(owner)
            storage[_balance_key(owner)] = initial_supply
            storage[TOTAL_SUPPLY] = initial_supply
            world.emit(address, "Transfer", {"from": ZERO_IDENTITY, "to": owner, "value": initial_supply})
        return token

    # ------------------------------------------------------------------
    # External entry points
    # ------------------------------------------------------------------

    @external("totalSupply()", returns=("uint256",))
    def total_supply(self, ctx: CallContext) -> int:
        return ctx.storage.get(TOTAL_SUPPLY, 0)

    @external("balanceOf(address)", returns=("uint256",))
    def balance_of_call(self, ctx: CallContext, owner: str) -> int:
        return ctx.storage.get(_balance_key(owner), 0)

    @external("allowance(address,address)", returns=("uint256",))
    def allowance_call(self, ctx: CallContext, owner: str, spender: str) -> int:
        return ctx.storage.get(_allowance_key(owner, spender), 0)

    @external("transfer(address,uint256)", returns=("bool",))
    def transfer(self, ctx: CallContext, to: str, amount: int) -> bool:
        self._move(ctx, ctx.sender, to, amount)
        return True

    @external("approve(address,uint256)", returns=("bool",))
    def approve(self, ctx: CallContext, spender: str, amount: int) -> bool:
        ctx.storage[_allowance_key(ctx.sender, spender)] = amount
        ctx.emit("Approval", owner=ctx.sender, spender=spender, value=amount)
        return True

    @external("transferFrom(address,address,uint256)", returns=("bool",))
    def transfer_from(self, ctx: CallContext, owner: str, to: str, amount: int) -> bool:
        key = _allowance_key(owner, ctx.sender)
        allowed = ctx.storage.get(key, 0)
        if allowed < amount:
            raise ExecutionReverted(
                f"{self.symbol}: allowance {allowed} of {ctx.sender} below {amount}"
            )
        ctx.storage[key] = allowed - amount
        self._move(ctx, owner, to, amount)
        return True

    def _move(self, ctx: CallContext, source: str, to: str, amount: int) -> None:
        if to == ZERO_IDENTITY:
            raise ExecutionReverted(f"{self.symbol}: transfer to the zero address")
        held = ctx.storage.get(_balance_key(source), 0)
        if held < amount:
            raise ExecutionReverted(f"{self.symbol}: {source} holds {held}, needs {amount}")
        ctx.storage[_balance_key(source)] = held - amount
        ctx.storage[_balance_key(to)] = ctx.storage.get(_balance_key(to), 0) + amount
        ctx.emit("Transfer", **{"from": source, "to": to, "value": amount})

    # ------------------------------------------------------------------
    # Off-chain helpers
    # ------------------------------------------------------------------

    def balance_of(self, owner: str) -> int:
        """Read a balance directly from the token's storage."""
        return self._storage().get(_balance_key(to_identity(owner)), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._storage().get(
            _allowance_key(to_identity(owner), to_identity(spender)), 0
        )

    @staticmethod
    def transfer_payload(to: str, amount: int) -> bytes:
        return encode_call("transfer(address,uint256)", to_identity(to), amount)

    @staticmethod
    def approve_payload(spender: str, amount: int) -> bytes:
        return encode_call("approve(address,uint256)", to_identity(spender), amount)

    @staticmethod
    def transfer_from_payload(owner: str, to: str, amount: int) -> bytes:
        return encode_call(
            "transferFrom(address,address,uint256)",
            to_identity(owner), to_identity(to), amount,
        )

    @staticmethod
    def balance_of_payload(owner: str) -> bytes:
        return encode_call("balanceOf(address)", to_identity(owner))

    def _storage(self) -> dict:
        if self.world is None or self.address is None:
            raise RuntimeError(f"Token {self.symbol} is not deployed")
        return self.world.storage_of(self.address)
