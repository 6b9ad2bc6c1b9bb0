"""Exception hierarchy for the Scell SDK.

Every failed API call surfaces as exactly one ``ScellError`` subclass, built
from the final HTTP response once retries are exhausted. Webhook
verification failures share the same root so callers can catch both with
one ``except`` clause.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

DEFAULT_ERROR_MESSAGE = "An error occurred"


class ScellError(Exception):
    """Base class for all SDK errors."""

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.response_body = response_body

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r}, code={self.code!r})"
        )

    def is_validation_error(self) -> bool:
        return self.status_code == 422

    def is_authentication_error(self) -> bool:
        return self.status_code == 401

    def is_rate_limit_error(self) -> bool:
        return self.status_code == 429


class ApiConnectionError(ScellError):
    """No HTTP response could be obtained (DNS, connect, TLS, timeout)."""


class AuthenticationError(ScellError):
    """Raised on HTTP 401."""

    @classmethod
    def invalid_token(cls) -> "AuthenticationError":
        return cls("Authentication token is invalid or expired", 401, "INVALID_TOKEN")

    @classmethod
    def invalid_api_key(cls) -> "AuthenticationError":
        return cls("API key is invalid or revoked", 401, "INVALID_API_KEY")

    @classmethod
    def missing_credentials(cls) -> "AuthenticationError":
        return cls(
            "No credentials configured. Use a bearer token, an API key or a tenant key.",
            401,
            "MISSING_CREDENTIALS",
        )


class ValidationError(ScellError):
    """Raised on HTTP 422, with per-field messages."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, Any]] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 422, "VALIDATION_ERROR", response_body)
        self.errors: Dict[str, List[str]] = {
            str(field): _as_messages(messages) for field, messages in (errors or {}).items()
        }

    def field_errors(self, field: str) -> List[str]:
        return list(self.errors.get(field, []))

    def first_field_error(self, field: str) -> Optional[str]:
        messages = self.errors.get(field) or []
        return messages[0] if messages else None

    def has_field_error(self, field: str) -> bool:
        return bool(self.errors.get(field))

    def failed_fields(self) -> List[str]:
        return list(self.errors)

    def all_messages(self) -> List[str]:
        """Flatten the messages of every field, in field order."""
        return [message for messages in self.errors.values() for message in messages]


class RateLimitError(ScellError):
    """Raised on HTTP 429 once retries are exhausted."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        limit: Optional[int] = None,
        remaining: Optional[int] = None,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 429, "RATE_LIMIT_EXCEEDED", response_body)
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after = retry_after

    @property
    def reset_datetime(self) -> Optional[datetime]:
        """Rate-limit window reset as an aware UTC datetime."""
        if self.reset_at is None:
            return None
        try:
            return datetime.fromtimestamp(self.reset_at, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None


class InsufficientBalanceError(ScellError):
    """Raised on HTTP 402 when the account balance cannot cover the operation."""

    def __init__(
        self,
        message: str = "Insufficient balance for this operation",
        current_balance: Optional[float] = None,
        required_amount: Optional[float] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 402, "INSUFFICIENT_BALANCE", response_body)
        self.current_balance = current_balance
        self.required_amount = required_amount

    @property
    def missing_amount(self) -> Optional[float]:
        if self.current_balance is None or self.required_amount is None:
            return None
        return max(0.0, self.required_amount - self.current_balance)


class WebhookVerificationError(ScellError):
    """Base class for webhook verification failures. Never retried."""


class SignatureFormatError(WebhookVerificationError):
    """Signature header is missing ``t`` or ``v1``, or ``t`` is not an integer."""


class SignatureExpiredError(WebhookVerificationError):
    """Signature timestamp is older than the tolerance window."""


class SignatureTimestampInFutureError(WebhookVerificationError):
    """Signature timestamp is further ahead than the tolerance window."""


class SignatureMismatchError(WebhookVerificationError):
    """Computed digest does not match the ``v1`` digest."""


class PayloadFormatError(WebhookVerificationError):
    """Signed payload is not valid JSON."""


def parse_json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decode a response body as a JSON object, or return an empty dict."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _header_int(response: httpx.Response, name: str) -> Optional[int]:
    value = response.headers.get(name)
    if value is None or value.strip() == "":
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def _as_messages(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(message) for message in value]
    if value is None:
        return []
    return [str(value)]


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def error_from_response(response: httpx.Response) -> ScellError:
    """Classify a non-2xx response into the matching ``ScellError``."""
    status_code = response.status_code
    body = parse_json_body(response)
    message = body.get("message") or body.get("error") or DEFAULT_ERROR_MESSAGE
    if not isinstance(message, str):
        message = str(message)
    code = body.get("code")

    if status_code == 401:
        return AuthenticationError(message, status_code, code, body)

    if status_code == 422:
        errors = body.get("errors")
        return ValidationError(
            body.get("message") or "Validation failed",
            errors if isinstance(errors, dict) else {},
            body,
        )

    if status_code == 429:
        return RateLimitError(
            body.get("message") or "Rate limit exceeded. Try again later.",
            limit=_header_int(response, "X-RateLimit-Limit"),
            remaining=_header_int(response, "X-RateLimit-Remaining"),
            reset_at=_header_int(response, "X-RateLimit-Reset"),
            retry_after=_header_int(response, "Retry-After"),
            response_body=body,
        )

    if status_code == 402:
        return InsufficientBalanceError(
            body.get("message") or "Insufficient balance for this operation",
            current_balance=_as_float(body.get("current_balance")),
            required_amount=_as_float(body.get("required_amount")),
            response_body=body,
        )

    return ScellError(message, status_code, code, body)
