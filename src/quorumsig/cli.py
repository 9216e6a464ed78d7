"""quorumsig CLI — inspect signing domains, build digests, sign and recover.

Usage:
    python -m quorumsig.cli domain
    python -m quorumsig.cli domain --engine swap
    python -m quorumsig.cli preimage --request request.json --nonces 0,3
    python -m quorumsig.cli digest --swap offer.json
    python -m quorumsig.cli sign --request request.json
    python -m quorumsig.cli recover --request request.json --signature 0x...

The signing key for ``sign`` is read from QUORUMSIG_PRIVATE_KEY (a
``.env`` file is honoured). Without ``--verifying-contract`` the domain
is the one a freshly configured world assigns to the engine.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from eth_account import Account

from quorumsig.config import ENV_PREFIX, EngineConfig
from quorumsig.crypto.signatures import SignatureVerifier, sign_typed_data
from quorumsig.crypto.typed_data import (
    StructuredDataEncoder,
    request_typed_data,
    swap_typed_data,
)
from quorumsig.engine.swap import SwapEngine
from quorumsig.models.authorization import AuthorizationRequest, SwapOffer
from quorumsig.models.domain import Domain


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "engine.json"
PRIVATE_KEY_VAR = f"{ENV_PREFIX}PRIVATE_KEY"

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> EngineConfig:
    if args.from_env:
        return EngineConfig.from_env()
    return EngineConfig.from_file(args.config)


def _domain(args: argparse.Namespace, engine: str) -> Domain:
    """Resolve the signing domain for ``engine`` ("batch" or "swap")."""
    config = _load_config(args)
    if args.verifying_contract:
        return Domain(
            config.domain_name,
            config.domain_version,
            config.chain_id,
            args.verifying_contract,
        )
    world = config.build_world()
    if engine == "swap":
        return SwapEngine(world, config.domain_name, config.domain_version).domain
    return config.build_executor(world).domain


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _parse_nonces(raw: Optional[str]) -> Optional[tuple[int, ...]]:
    if raw is None:
        return None
    return tuple(int(part) for part in raw.split(",") if part.strip())


def _load_document(args: argparse.Namespace) -> tuple[Domain, StructuredDataEncoder, Any, tuple]:
    """Load the request or offer named on the command line.

    Returns (domain, encoder, document, nonces). Swap offers carry their
    nonces inline; ``--nonces`` overrides them with exactly two values.
    """
    nonces = _parse_nonces(args.nonces)
    if args.swap is not None:
        offer = SwapOffer.from_dict(_read_json(args.swap))
        if nonces is not None:
            if len(nonces) != 2:
                raise ValueError("A swap takes exactly two nonces")
            offer = offer.with_nonces(*nonces)
        domain = _domain(args, "swap")
        return domain, StructuredDataEncoder(domain), offer, (offer.nonce_a, offer.nonce_b)

    request = AuthorizationRequest.from_dict(_read_json(args.request))
    if nonces is None:
        nonces = request.nonces or tuple(0 for _ in request.signers)
    domain = _domain(args, "batch")
    return domain, StructuredDataEncoder(domain), request, nonces


def _digest(encoder: StructuredDataEncoder, document: Any, nonces: tuple) -> bytes:
    if isinstance(document, SwapOffer):
        return encoder.swap_digest(document)
    return encoder.request_digest(document, nonces)


def cmd_domain(args: argparse.Namespace) -> int:
    domain = _domain(args, args.engine)
    encoder = StructuredDataEncoder(domain)
    print(json.dumps({
        "domain": domain.to_dict(),
        "separator": "0x" + encoder.domain_separator.hex(),
    }, indent=2))
    return 0


def cmd_preimage(args: argparse.Namespace) -> int:
    _, encoder, document, nonces = _load_document(args)
    if isinstance(document, SwapOffer):
        preimage = encoder.encode_swap_preimage(document)
    else:
        preimage = encoder.encode_request_preimage(document, nonces)
    print("0x" + preimage.hex())
    return 0


def cmd_digest(args: argparse.Namespace) -> int:
    _, encoder, document, nonces = _load_document(args)
    print("0x" + _digest(encoder, document, nonces).hex())
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    load_dotenv()
    private_key = os.getenv(PRIVATE_KEY_VAR)
    if not private_key:
        print(f"Failed: {PRIVATE_KEY_VAR} is not set", file=sys.stderr)
        return 1

    domain, _, document, nonces = _load_document(args)
    if isinstance(document, SwapOffer):
        full_message = swap_typed_data(domain, document)
    else:
        full_message = request_typed_data(domain, document, nonces)
    signature = sign_typed_data(full_message, private_key)
    print(json.dumps({
        "signer": Account.from_key(private_key).address,
        "signature": "0x" + signature.hex(),
    }, indent=2))
    return 0


def cmd_recover(args: argparse.Namespace) -> int:
    _, encoder, document, nonces = _load_document(args)
    signature = bytes.fromhex(args.signature.removeprefix("0x"))
    recovered = SignatureVerifier().recover(_digest(encoder, document, nonces), signature)
    if recovered is None:
        print("Failed: signature could not be recovered", file=sys.stderr)
        return 1
    print(recovered)
    return 0


def _add_document_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--request", type=Path, help="Authorization request JSON file")
    source.add_argument("--swap", type=Path, help="Swap offer JSON file")
    parser.add_argument("--nonces", help="Comma-separated nonce snapshot")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quorumsig",
        description="Quorum authorization engine tools",
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG,
        help="Engine configuration file",
    )
    parser.add_argument(
        "--from-env", action="store_true",
        help=f"Read configuration from {ENV_PREFIX}* variables instead",
    )
    parser.add_argument("--verifying-contract", help="Engine address to sign for")
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command")

    p_domain = sub.add_parser("domain", help="Show the signing domain and its separator")
    p_domain.add_argument("--engine", choices=["batch", "swap"], default="batch")

    p_pre = sub.add_parser("preimage", help="Show the structured-hash preimage")
    _add_document_arguments(p_pre)

    p_digest = sub.add_parser("digest", help="Show the digest signers sign")
    _add_document_arguments(p_digest)

    p_sign = sub.add_parser("sign", help=f"Sign with the key in {PRIVATE_KEY_VAR}")
    _add_document_arguments(p_sign)

    p_rec = sub.add_parser("recover", help="Recover the signer of a signature")
    _add_document_arguments(p_rec)
    p_rec.add_argument("--signature", required=True, help="65-byte hex signature")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "domain": cmd_domain,
        "preimage": cmd_preimage,
        "digest": cmd_digest,
        "sign": cmd_sign,
        "recover": cmd_recover,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (ValueError, KeyError, OSError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
