"""Python SDK for the Scell.io e-invoicing and e-signature API."""

__version__ = "0.1.0"

from .config import Environment, ScellSettings, get_settings
from .errors import (
    ApiConnectionError,
    AuthenticationError,
    InsufficientBalanceError,
    PayloadFormatError,
    RateLimitError,
    ScellError,
    SignatureExpiredError,
    SignatureFormatError,
    SignatureMismatchError,
    SignatureTimestampInFutureError,
    ValidationError,
    WebhookVerificationError,
)
from .http import ScellHttpClient
from .logging import bind_context, clear_context, setup_logging
from .models import ApiRequest, Credential, CredentialKind, HttpMethod, WebhookEvent, WebhookPayload
from .retry import RetryPolicy
from .webhooks import SIGNATURE_HEADER, WebhookVerifier
