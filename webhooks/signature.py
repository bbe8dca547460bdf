"""
Webhooks - Payload Signing.

X-Webhook-Signature is the lowercase hex HMAC-SHA256 of the
exact serialized request body, keyed with the subscription's
signing secret (UTF-8).
"""

import base64
import hashlib
import hmac
import secrets


SIGNING_SECRET_BYTES = 32
VERIFICATION_TOKEN_BYTES = 16


class WebhookSignatureService:
    """HMAC-SHA256 signing and secret generation."""

    def generate_signature(self, payload: str, secret: str) -> str:
        digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()

    def verify_signature(self, payload: str, signature: str, secret: str) -> bool:
        """Constant-time comparison; hex case is ignored."""
        if not signature:
            return False
        expected = self.generate_signature(payload, secret)
        return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))

    def generate_signing_secret(self) -> str:
        """256 random bits, base64."""
        return base64.b64encode(secrets.token_bytes(SIGNING_SECRET_BYTES)).decode("ascii")

    def generate_verification_token(self) -> str:
        """128 random bits, base64."""
        return base64.b64encode(secrets.token_bytes(VERIFICATION_TOKEN_BYTES)).decode("ascii")
