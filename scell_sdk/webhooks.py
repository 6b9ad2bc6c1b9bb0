"""Verification of inbound Scell webhook deliveries.

Scell signs each delivery with HMAC-SHA256 over ``"{timestamp}.{body}"`` and
sends the result in the ``X-Scell-Signature`` header::

    X-Scell-Signature: t=1735689600,v1=5257a869e7ecebeda32affa62cdca3fa51cad7e77a0e56ff536d0ce8e108d8bd

Usage in a webhook endpoint::

    verifier = WebhookVerifier(settings.webhook_secret)
    try:
        payload = verifier.verify(await request.body(), request.headers[SIGNATURE_HEADER])
    except WebhookVerificationError:
        return Response(status_code=400)
"""

import hashlib
import hmac
import json
import time
from typing import Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .config import ScellSettings
from .errors import (
    PayloadFormatError,
    SignatureExpiredError,
    SignatureFormatError,
    SignatureMismatchError,
    SignatureTimestampInFutureError,
    WebhookVerificationError,
)
from .logging import get_logger
from .models import JsonValue, WebhookPayload

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Scell-Signature"
DEFAULT_TOLERANCE = 300  # seconds

Payload = Union[str, bytes]


def parse_signature_header(header: str) -> Dict[str, str]:
    """Split ``k=v,k=v`` pairs. Pairs without ``=`` are skipped, later keys win."""
    parsed: Dict[str, str] = {}
    for part in header.split(","):
        key, sep, value = part.partition("=")
        if sep:
            parsed[key.strip()] = value.strip()
    return parsed


class WebhookVerifier:
    """HMAC signature verification for webhook payloads."""

    def __init__(self, secret: str):
        """Initialize with webhook secret (starts with ``whsec_``)."""
        if not secret:
            raise ValueError("Webhook secret must not be empty")
        self._secret = secret.encode("utf-8")

    @classmethod
    def from_settings(cls, settings: ScellSettings) -> "WebhookVerifier":
        if not settings.webhook_secret:
            raise ValueError("SCELL_WEBHOOK_SECRET is not configured")
        return cls(settings.webhook_secret)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(secret=<redacted>)"

    def _digest(self, payload: str, timestamp: int) -> str:
        signed_payload = f"{timestamp}.{payload}"
        return hmac.new(
            self._secret,
            signed_payload.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def generate_signature(self, payload: Payload, timestamp: Optional[int] = None) -> str:
        """Build the ``t=<ts>,v1=<hex>`` header value for a payload.

        Args:
            payload: Raw JSON body
            timestamp: Unix timestamp (default: now)

        Returns:
            Signature header value
        """
        if timestamp is None:
            timestamp = int(time.time())
        return f"t={timestamp},v1={self._digest(_as_text(payload), timestamp)}"

    def verify(
        self,
        payload: Payload,
        signature_header: str,
        tolerance: int = DEFAULT_TOLERANCE,
    ) -> JsonValue:
        """Verify a delivery and return its decoded JSON body.

        Args:
            payload: Raw request body, exactly as received
            signature_header: Value of the ``X-Scell-Signature`` header
            tolerance: Accepted clock skew in seconds; 0 disables the check

        Returns:
            Decoded payload

        Raises:
            SignatureFormatError: Header lacks ``t`` or ``v1``
            SignatureExpiredError: Timestamp older than ``tolerance``
            SignatureTimestampInFutureError: Timestamp newer than ``tolerance``
            SignatureMismatchError: Digest does not match
            PayloadFormatError: Body is not valid JSON
        """
        parsed = parse_signature_header(signature_header)
        if "t" not in parsed or "v1" not in parsed:
            raise SignatureFormatError("Invalid signature format")

        try:
            timestamp = int(parsed["t"])
        except ValueError:
            raise SignatureFormatError("Invalid signature timestamp") from None

        if tolerance > 0:
            now = int(time.time())
            if timestamp < now - tolerance:
                raise SignatureExpiredError("Signature expired")
            if timestamp > now + tolerance:
                raise SignatureTimestampInFutureError("Signature timestamp is in the future")

        text = _as_text(payload)
        expected = self._digest(text, timestamp)
        if not hmac.compare_digest(expected.encode("utf-8"), parsed["v1"].encode("utf-8")):
            raise SignatureMismatchError("Invalid signature")

        try:
            return json.loads(text)
        except ValueError:
            raise PayloadFormatError("Invalid JSON payload") from None

    def verify_ignoring_timestamp(self, payload: Payload, signature_header: str) -> JsonValue:
        """Verify the signature only. Disables replay protection; use for tests and replays."""
        return self.verify(payload, signature_header, tolerance=0)

    def is_valid(self, payload: Payload, signature_header: str) -> bool:
        """Return whether ``verify`` would succeed, without raising."""
        try:
            self.verify(payload, signature_header)
        except WebhookVerificationError as e:
            logger.info("Webhook verification failed", reason=type(e).__name__)
            return False
        except (TypeError, AttributeError):
            return False
        return True

    def construct_event(
        self,
        payload: Payload,
        signature_header: str,
        tolerance: int = DEFAULT_TOLERANCE,
    ) -> WebhookPayload:
        """Verify a delivery and parse it into a typed ``WebhookPayload``."""
        decoded = self.verify(payload, signature_header, tolerance)
        try:
            return WebhookPayload.model_validate(decoded)
        except PydanticValidationError as e:
            raise PayloadFormatError(f"Unexpected webhook payload: {e}") from e


def _as_text(payload: Payload) -> str:
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError:
            raise PayloadFormatError("Payload is not valid UTF-8") from None
    return payload
