"""Contract base class — selector dispatch over ABI-encoded payloads.

Subclasses mark their entry points with ``@external``:

    class Counter(Contract):
        @external("increment(uint256)", returns=("uint256",))
        def increment(self, ctx, amount):
            ctx.storage["count"] = ctx.storage.get("count", 0) + amount
            return ctx.storage["count"]

A contract object is code, not state. Everything mutable lives in
``ctx.storage`` so that the world can snapshot and restore it, and so
that a delegated call can run the same code against another account.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from quorumsig.chain.abi import argument_types, function_selector
from quorumsig.chain.world import CallContext, ExecutionReverted
from quorumsig.models.domain import to_identity

if TYPE_CHECKING:
    from quorumsig.chain.world import WorldState


def external(signature: str, returns: tuple[str, ...] = ()) -> Callable:
    """Expose a method under an ABI function signature."""
    def decorator(fn: Callable) -> Callable:
        fn.__external__ = (signature, tuple(returns))
        return fn
    return decorator


class Contract:
    """Code deployed at an address in a WorldState."""

    world: Optional["WorldState"] = None
    address: Optional[str] = None
    _abi: dict[bytes, tuple[str, list[str], tuple[str, ...]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: dict[bytes, tuple[str, list[str], tuple[str, ...]]] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                spec = getattr(attr, "__external__", None)
                if spec is None:
                    continue
                signature, returns = spec
                table[function_selector(signature)] = (
                    name, argument_types(signature), returns,
                )
        cls._abi = table

    def bind(self, world: "WorldState", address: str) -> None:
        if self.address is not None:
            raise ValueError(f"{type(self).__name__} is already deployed at {self.address}")
        self.world = world
        self.address = address

    def execute(self, ctx: CallContext, payload: bytes) -> bytes:
        """Dispatch ``payload`` to the matching external method."""
        if not payload:
            return self.receive(ctx)
        entry = self._abi.get(payload[:4])
        if entry is None:
            raise ExecutionReverted(
                f"{type(self).__name__}: unknown selector 0x{payload[:4].hex()}"
            )
        name, arg_types, returns = entry
        try:
            args = decode(arg_types, payload[4:])
        except DecodingError as exc:
            raise ExecutionReverted(f"{type(self).__name__}.{name}: bad calldata") from exc
        args = [
            to_identity(arg) if arg_type == "address" else arg
            for arg_type, arg in zip(arg_types, args)
        ]
        result = getattr(self, name)(ctx, *args)
        if not returns:
            return b""
        if len(returns) == 1:
            result = (result,)
        return encode(list(returns), list(result))

    def receive(self, ctx: CallContext) -> bytes:
        """Handle a call with an empty payload. Rejects by default."""
        raise ExecutionReverted(f"{type(self).__name__} does not accept plain transfers")
