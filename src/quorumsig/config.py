"""Engine configuration — signing domain, membership and quorum.

Configuration comes from a JSON file (``config/engine.json`` by default)
or from environment variables, optionally loaded from a ``.env`` file:

    QUORUMSIG_DOMAIN_NAME      domain name (required)
    QUORUMSIG_DOMAIN_VERSION   domain version (default "1")
    QUORUMSIG_CHAIN_ID         chain id bound into every digest
    QUORUMSIG_RPC_URL          node to ask for the chain id when
                               QUORUMSIG_CHAIN_ID is unset
    QUORUMSIG_MEMBERS          comma-separated member addresses
    QUORUMSIG_QUORUM           minimum number of signatures

Signing keys are never part of the configuration.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from quorumsig.authority.membership import check_configuration
from quorumsig.chain.world import DEFAULT_CHAIN_ID, WorldState
from quorumsig.engine.batch import DEFAULT_DOMAIN_VERSION, BatchExecutor
from quorumsig.errors import ConfigurationError
from quorumsig.models.domain import to_identity


ENV_PREFIX = "QUORUMSIG_"


def resolve_chain_id(rpc_url: str) -> int:
    """Ask a live node for its chain id."""
    from web3 import HTTPProvider, Web3

    w3 = Web3(HTTPProvider(rpc_url))
    return int(w3.eth.chain_id)


@dataclass(frozen=True)
class EngineConfig:
    """Validated engine configuration.

    Usage:
        config = EngineConfig.from_file(Path("config/engine.json"))
        engine = config.build_executor(world)
    """
    domain_name: str
    members: tuple[str, ...]
    quorum: int
    domain_version: str = DEFAULT_DOMAIN_VERSION
    chain_id: int = DEFAULT_CHAIN_ID

    def __post_init__(self) -> None:
        if not self.domain_name:
            raise ConfigurationError("domain_name must not be empty")
        if self.chain_id < 0:
            raise ConfigurationError("chain_id must be >= 0")
        check_configuration(self.members, self.quorum)
        # Keep the caller's order but store checksummed, deduplicated addresses.
        object.__setattr__(
            self, "members", tuple(dict.fromkeys(to_identity(m) for m in self.members))
        )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "EngineConfig":
        try:
            return EngineConfig(
                domain_name=data["domain_name"],
                members=tuple(data["members"]),
                quorum=int(data["quorum"]),
                domain_version=str(data.get("domain_version", DEFAULT_DOMAIN_VERSION)),
                chain_id=int(data.get("chain_id", DEFAULT_CHAIN_ID)),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Missing configuration key: {exc.args[0]}") from exc

    @classmethod
    def from_file(cls, path: Path) -> "EngineConfig":
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "EngineConfig":
        """Build from ``QUORUMSIG_*`` variables, loading ``env_file`` first."""
        load_dotenv(env_file)
        name = os.getenv(f"{ENV_PREFIX}DOMAIN_NAME")
        members = os.getenv(f"{ENV_PREFIX}MEMBERS", "")
        quorum = os.getenv(f"{ENV_PREFIX}QUORUM")
        if not name or quorum is None:
            raise ConfigurationError(
                f"{ENV_PREFIX}DOMAIN_NAME and {ENV_PREFIX}QUORUM must be set"
            )

        chain_id = os.getenv(f"{ENV_PREFIX}CHAIN_ID")
        rpc_url = os.getenv(f"{ENV_PREFIX}RPC_URL")
        if chain_id is not None:
            resolved_chain_id = int(chain_id)
        elif rpc_url:
            resolved_chain_id = resolve_chain_id(rpc_url)
        else:
            resolved_chain_id = DEFAULT_CHAIN_ID

        return cls(
            domain_name=name,
            members=tuple(m.strip() for m in members.split(",") if m.strip()),
            quorum=int(quorum),
            domain_version=os.getenv(f"{ENV_PREFIX}DOMAIN_VERSION", DEFAULT_DOMAIN_VERSION),
            chain_id=resolved_chain_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain_name": self.domain_name,
            "domain_version": self.domain_version,
            "chain_id": self.chain_id,
            "members": list(self.members),
            "quorum": self.quorum,
        }

    def build_world(self, timestamp: Optional[int] = None) -> WorldState:
        return WorldState(chain_id=self.chain_id, timestamp=timestamp)

    def build_executor(self, world: WorldState) -> BatchExecutor:
        if world.chain_id != self.chain_id:
            raise ConfigurationError(
                f"World chain id {world.chain_id} does not match configured {self.chain_id}"
            )
        return BatchExecutor(
            world,
            self.domain_name,
            self.members,
            self.quorum,
            domain_version=self.domain_version,
        )

