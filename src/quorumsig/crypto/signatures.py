"""Signature recovery and off-core signing helpers.

Recovery is pure and deterministic. A malformed signature and a
signature by the wrong key are the same failure: the engine only ever
asks whether the recovered identity equals the expected signer.

Only canonical signatures recover: 65 bytes laid out as r ‖ s ‖ v with
v in {27, 28} and s in the lower half of the curve order. The mirrored
high-s form of a valid signature recovers to nothing, so each
(digest, signer) pair has exactly one accepted byte string.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError

from quorumsig.errors import SignerMismatch


logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 65
SECPK1_HALF_N = SECPK1_N // 2


class SignatureVerifier:
    """Recovers signer identities from (digest, signature) pairs.

    Usage:
        verifier = SignatureVerifier()
        signer = verifier.recover(digest, signature)
        verifier.verify(digest, signature, expected=alice, index=0)
    """

    def recover(self, digest: bytes, signature: bytes) -> Optional[str]:
        """Return the checksummed address that produced ``signature``.

        Returns None when the signature cannot be recovered or is not
        canonical (wrong length, ``v`` outside {27, 28}, high ``s``,
        point not on the curve).
        """
        if len(digest) != 32:
            raise ValueError("Digest must be 32 bytes")
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
            logger.debug("Signature rejected: not %d bytes", SIGNATURE_LENGTH)
            return None

        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        v = signature[64]
        if v not in (27, 28) or not 0 < s <= SECPK1_HALF_N:
            logger.debug("Signature rejected: non-canonical v=%d or s", v)
            return None
        try:
            public_key = keys.Signature(vrs=(v - 27, r, s)).recover_public_key_from_msg_hash(
                bytes(digest)
            )
        except (BadSignature, ValidationError, ValueError) as exc:
            logger.debug("Signature recovery failed: %s", exc)
            return None
        return public_key.to_checksum_address()

    def verify(self, digest: bytes, signature: bytes, expected: str, index: int) -> None:
        """Raise SignerMismatch unless ``signature`` recovers to ``expected``."""
        recovered = self.recover(digest, signature)
        if recovered != expected:
            raise SignerMismatch(recovered, expected, index)


def sign_typed_data(full_message: dict[str, Any], private_key: Any) -> bytes:
    """Sign an EIP-712 document the way a wallet would; returns r ‖ s ‖ v."""
    signable = encode_typed_data(full_message=full_message)
    return bytes(Account.sign_message(signable, private_key).signature)
