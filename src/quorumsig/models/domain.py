"""Identity and signing-domain models.

An Identity is a checksummed 20-byte account address. Addresses are
compared by their numeric (uint160) value, never by their mixed-case
string form: two checksummed strings do not sort the way the
underlying integers do.

A Domain binds every digest to one deployment: a signature produced
for one name, version, chain or verifying contract never validates
against another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from web3 import Web3


ZERO_IDENTITY = "0x" + "0" * 40

# ERC-5267 field bitmap: name, version, chainId, verifyingContract.
DOMAIN_FIELDS = b"\x0f"


def to_identity(value: str) -> str:
    """Normalize an address to its checksummed form.

    Raises:
        ValueError: if the value is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Not an account address: {value!r}")
    return Web3.to_checksum_address(value)


def identity_order(identity: str) -> int:
    """Sort key for identities: the numeric value of the address."""
    return int(identity, 16)


def sort_identities(identities: Iterable[str]) -> list[str]:
    """Return identities in strictly ascending numeric order."""
    return sorted((to_identity(i) for i in identities), key=identity_order)


@dataclass(frozen=True)
class DomainDescription:
    """ERC-5267 style description of a signing domain."""
    fields: bytes
    name: str
    version: str
    chain_id: int
    verifying_contract: str
    salt: bytes = b"\x00" * 32
    extensions: tuple[int, ...] = ()


@dataclass(frozen=True)
class Domain:
    """The signing domain fixed at engine construction.

    Invariants:
    - name is non-empty
    - chain_id >= 0
    - verifying_contract is a checksummed address
    """
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Domain name must not be empty")
        if self.chain_id < 0:
            raise ValueError("Domain chain_id must be >= 0")
        object.__setattr__(
            self, "verifying_contract", to_identity(self.verifying_contract)
        )

    def to_dict(self) -> dict[str, Any]:
        """The EIP-712 ``domain`` object, keyed the way wallets expect."""
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def describe(self) -> DomainDescription:
        return DomainDescription(
            fields=DOMAIN_FIELDS,
            name=self.name,
            version=self.version,
            chain_id=self.chain_id,
            verifying_contract=self.verifying_contract,
        )
