"""Cryptographic primitives — structured digests and signature recovery."""

from quorumsig.crypto.signatures import SignatureVerifier, sign_typed_data
from quorumsig.crypto.typed_data import (
    StructuredDataEncoder,
    keccak,
    request_typed_data,
    swap_typed_data,
)

__all__ = [
    "SignatureVerifier",
    "StructuredDataEncoder",
    "keccak",
    "request_typed_data",
    "sign_typed_data",
    "swap_typed_data",
]
