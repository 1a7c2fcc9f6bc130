"""
IPN signature verification.

CoinPayments signs each IPN with HMAC-SHA512 over the raw request body,
keyed with the merchant's IPN secret, and sends the hex digest in the
``HMAC`` header. The digest must be computed over the bytes exactly as
received; a re-serialised body will not match.
"""
import hashlib
import hmac
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class IPNVerifier:
    """Verifies IPN signatures with a shared secret."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("IPN secret must not be empty")
        self._secret = secret.encode("utf-8")

    def compute_signature(self, raw_body: bytes) -> str:
        """Hex HMAC-SHA512 of raw_body."""
        return hmac.new(self._secret, raw_body, hashlib.sha512).hexdigest()

    def verify(self, raw_body: bytes, provided_signature: Optional[str]) -> bool:
        """
        Check that provided_signature is the HMAC of raw_body.

        Args:
            raw_body: Request body bytes as received
            provided_signature: Hex digest from the signature header

        Returns:
            bool: True only for a non-empty body with a matching signature
                (hex comparison is case-insensitive)
        """
        if not raw_body:
            logger.warning("ipn_verification_failed", reason="empty_body")
            return False
        if not provided_signature or not provided_signature.strip():
            logger.warning("ipn_verification_failed", reason="missing_signature")
            return False

        expected = self.compute_signature(raw_body)
        provided = provided_signature.strip().lower()
        if not hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8")):
            logger.warning("ipn_verification_failed", reason="signature_mismatch")
            return False

        return True
