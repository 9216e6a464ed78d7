"""Call payload encoding: 4-byte function selector followed by ABI arguments.

Only flat argument lists are supported (``transfer(address,uint256)``),
which is all the contracts in this package expose.
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from web3 import Web3


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak(signature)."""
    return bytes(Web3.keccak(text=signature)[:4])


def argument_types(signature: str) -> list[str]:
    """``"transfer(address,uint256)"`` → ``["address", "uint256"]``."""
    start = signature.index("(")
    if not signature.endswith(")"):
        raise ValueError(f"Malformed function signature: {signature!r}")
    inner = signature[start + 1:-1]
    return [t.strip() for t in inner.split(",") if t.strip()]


def encode_call(signature: str, *args: Any) -> bytes:
    """Build the payload that invokes ``signature`` with ``args``."""
    return function_selector(signature) + encode(argument_types(signature), list(args))


def decode_result(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """Decode ABI return data."""
    return tuple(decode(list(types), data))
