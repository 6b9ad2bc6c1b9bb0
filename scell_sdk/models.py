"""Shared Pydantic models for the Scell SDK."""

from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

JsonObject = Dict[str, JsonValue]
QueryValue = Union[str, int, float, bool, None]
QueryParams = Dict[str, Union[QueryValue, List[QueryValue]]]


class HttpMethod(str, Enum):
    """HTTP request methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


IDEMPOTENT_METHODS = frozenset(
    {
        HttpMethod.GET,
        HttpMethod.HEAD,
        HttpMethod.PUT,
        HttpMethod.DELETE,
        HttpMethod.OPTIONS,
    }
)


class ApiRequest(BaseModel):
    """A single logical API call, built once and never modified."""

    method: HttpMethod
    path: str
    query: QueryParams = Field(default_factory=dict)
    body: Optional[JsonObject] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    raw: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Accept lowercase method names."""
        if isinstance(v, str):
            return v.upper()
        return v


class CredentialKind(str, Enum):
    """Authentication modes supported by the API."""

    BEARER = "bearer"
    API_KEY = "api_key"
    TENANT_KEY = "tenant_key"

    @property
    def header_name(self) -> str:
        """Header carrying this credential."""
        return {
            CredentialKind.BEARER: "Authorization",
            CredentialKind.API_KEY: "X-API-Key",
            CredentialKind.TENANT_KEY: "X-Tenant-Key",
        }[self]


class Credential(BaseModel):
    """The single active credential of a client."""

    kind: CredentialKind
    value: str = Field(min_length=1, repr=False)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def bearer(cls, token: str) -> "Credential":
        return cls(kind=CredentialKind.BEARER, value=token)

    @classmethod
    def api_key(cls, key: str) -> "Credential":
        return cls(kind=CredentialKind.API_KEY, value=key)

    @classmethod
    def tenant_key(cls, key: str) -> "Credential":
        return cls(kind=CredentialKind.TENANT_KEY, value=key)

    def header(self) -> Tuple[str, str]:
        """Render the credential as a (name, value) header pair."""
        if self.kind == CredentialKind.BEARER:
            return self.kind.header_name, f"Bearer {self.value}"
        return self.kind.header_name, self.value


class WebhookEvent(str, Enum):
    """Events delivered by Scell webhooks."""

    # Outgoing invoices
    INVOICE_CREATED = "invoice.created"
    INVOICE_VALIDATED = "invoice.validated"
    INVOICE_TRANSMITTED = "invoice.transmitted"
    INVOICE_ACCEPTED = "invoice.accepted"
    INVOICE_REJECTED = "invoice.rejected"
    INVOICE_ERROR = "invoice.error"

    # Incoming invoices
    INVOICE_INCOMING_RECEIVED = "invoice.incoming.received"
    INVOICE_INCOMING_ACCEPTED = "invoice.incoming.accepted"
    INVOICE_INCOMING_REJECTED = "invoice.incoming.rejected"
    INVOICE_INCOMING_DISPUTED = "invoice.incoming.disputed"
    INVOICE_INCOMING_PAID = "invoice.incoming.paid"

    # Signatures
    SIGNATURE_CREATED = "signature.created"
    SIGNATURE_WAITING = "signature.waiting"
    SIGNATURE_SIGNED = "signature.signed"
    SIGNATURE_COMPLETED = "signature.completed"
    SIGNATURE_REFUSED = "signature.refused"
    SIGNATURE_EXPIRED = "signature.expired"
    SIGNATURE_ERROR = "signature.error"

    # Balance
    BALANCE_LOW = "balance.low"
    BALANCE_CRITICAL = "balance.critical"

    @property
    def domain(self) -> str:
        """Top-level domain of the event: invoice, signature or balance."""
        return self.value.split(".", 1)[0]

    @property
    def label(self) -> str:
        """Human-readable French label, as shown in the Scell dashboard."""
        return _EVENT_LABELS[self]

    @classmethod
    def for_domain(cls, domain: str) -> List["WebhookEvent"]:
        """Return every event belonging to a domain."""
        return [event for event in cls if event.domain == domain]

    @classmethod
    def values(cls) -> List[str]:
        """Return the wire value of every event."""
        return [event.value for event in cls]


_EVENT_LABELS: Dict[WebhookEvent, str] = {
    WebhookEvent.INVOICE_CREATED: "Facture creee",
    WebhookEvent.INVOICE_VALIDATED: "Facture validee",
    WebhookEvent.INVOICE_TRANSMITTED: "Facture transmise",
    WebhookEvent.INVOICE_ACCEPTED: "Facture acceptee",
    WebhookEvent.INVOICE_REJECTED: "Facture refusee",
    WebhookEvent.INVOICE_ERROR: "Erreur facture",
    WebhookEvent.INVOICE_INCOMING_RECEIVED: "Facture entrante recue",
    WebhookEvent.INVOICE_INCOMING_ACCEPTED: "Facture entrante acceptee",
    WebhookEvent.INVOICE_INCOMING_REJECTED: "Facture entrante rejetee",
    WebhookEvent.INVOICE_INCOMING_DISPUTED: "Facture entrante contestee",
    WebhookEvent.INVOICE_INCOMING_PAID: "Facture entrante payee",
    WebhookEvent.SIGNATURE_CREATED: "Signature creee",
    WebhookEvent.SIGNATURE_WAITING: "Signature en attente",
    WebhookEvent.SIGNATURE_SIGNED: "Document signe",
    WebhookEvent.SIGNATURE_COMPLETED: "Signature terminee",
    WebhookEvent.SIGNATURE_REFUSED: "Signature refusee",
    WebhookEvent.SIGNATURE_EXPIRED: "Signature expiree",
    WebhookEvent.SIGNATURE_ERROR: "Erreur signature",
    WebhookEvent.BALANCE_LOW: "Solde bas",
    WebhookEvent.BALANCE_CRITICAL: "Solde critique",
}


class WebhookPayload(BaseModel):
    """Decoded body of a verified webhook delivery."""

    event: WebhookEvent
    timestamp: str
    data: JsonObject = Field(default_factory=dict)
    delivery_id: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def is_invoice_event(self) -> bool:
        return self.event.domain == "invoice"

    def is_signature_event(self) -> bool:
        return self.event.domain == "signature"

    def is_balance_event(self) -> bool:
        return self.event.domain == "balance"
