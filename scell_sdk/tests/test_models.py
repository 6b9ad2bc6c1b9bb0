"""Tests for request descriptors, credentials and webhook events."""

import pytest
from pydantic import ValidationError

from scell_sdk.models import (
    IDEMPOTENT_METHODS,
    ApiRequest,
    Credential,
    CredentialKind,
    HttpMethod,
    WebhookEvent,
    WebhookPayload,
)


class TestApiRequest:
    """Test the request descriptor."""

    def test_defaults(self):
        request = ApiRequest(method="GET", path="/invoices")

        assert request.method is HttpMethod.GET
        assert request.query == {}
        assert request.body is None
        assert request.headers == {}
        assert request.raw is False

    def test_lowercase_method_normalized(self):
        assert ApiRequest(method="delete", path="x").method is HttpMethod.DELETE

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            ApiRequest(method="PATCH", path="x")

    def test_immutable(self):
        request = ApiRequest(method="GET", path="/invoices")

        with pytest.raises(ValidationError):
            request.path = "/other"

    def test_idempotent_methods(self):
        assert HttpMethod.POST not in IDEMPOTENT_METHODS
        assert {HttpMethod.GET, HttpMethod.PUT, HttpMethod.DELETE} <= IDEMPOTENT_METHODS


class TestCredential:
    """Test credential rendering."""

    @pytest.mark.parametrize(
        "credential, header",
        [
            (Credential.bearer("tok"), ("Authorization", "Bearer tok")),
            (Credential.api_key("sk_live_1"), ("X-API-Key", "sk_live_1")),
            (Credential.tenant_key("tk_live_1"), ("X-Tenant-Key", "tk_live_1")),
        ],
    )
    def test_header(self, credential, header):
        assert credential.header() == header

    def test_empty_value_rejected(self):
        with pytest.raises(ValidationError):
            Credential(kind=CredentialKind.API_KEY, value="")


class TestWebhookEvent:
    """Test webhook event helpers."""

    @pytest.mark.parametrize(
        "event, domain",
        [
            (WebhookEvent.INVOICE_CREATED, "invoice"),
            (WebhookEvent.INVOICE_INCOMING_PAID, "invoice"),
            (WebhookEvent.SIGNATURE_REFUSED, "signature"),
            (WebhookEvent.BALANCE_CRITICAL, "balance"),
        ],
    )
    def test_domain(self, event, domain):
        assert event.domain == domain

    def test_for_domain(self):
        assert WebhookEvent.for_domain("balance") == [WebhookEvent.BALANCE_LOW, WebhookEvent.BALANCE_CRITICAL]
        assert len(WebhookEvent.for_domain("invoice")) == 11
        assert len(WebhookEvent.for_domain("signature")) == 7
        assert WebhookEvent.for_domain("unknown") == []

    @pytest.mark.parametrize(
        "event, label",
        [
            (WebhookEvent.INVOICE_CREATED, "Facture creee"),
            (WebhookEvent.INVOICE_INCOMING_RECEIVED, "Facture entrante recue"),
            (WebhookEvent.SIGNATURE_SIGNED, "Document signe"),
            (WebhookEvent.BALANCE_LOW, "Solde bas"),
        ],
    )
    def test_label(self, event, label):
        assert event.label == label

    def test_every_event_has_label(self):
        assert all(event.label for event in WebhookEvent)

    def test_values(self):
        values = WebhookEvent.values()

        assert len(values) == 20
        assert values[0] == "invoice.created"
        assert "invoice.incoming.paid" in values
        assert values[-1] == "balance.critical"
        assert all(isinstance(value, str) for value in values)


class TestWebhookPayload:
    """Test the typed webhook payload."""

    def test_from_dict(self):
        payload = WebhookPayload.model_validate(
            {
                "event": "balance.low",
                "timestamp": "2026-10-18T10:00:00Z",
                "data": {"balance": 4.5},
                "unexpected": True,
            }
        )

        assert payload.event is WebhookEvent.BALANCE_LOW
        assert payload.data == {"balance": 4.5}
        assert payload.delivery_id is None
        assert payload.is_balance_event()
