"""Tests for webhook signature verification."""

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest

from scell_sdk.config import ScellSettings
from scell_sdk.errors import (
    PayloadFormatError,
    ScellError,
    SignatureExpiredError,
    SignatureFormatError,
    SignatureMismatchError,
    SignatureTimestampInFutureError,
    WebhookVerificationError,
)
from scell_sdk.models import WebhookEvent, WebhookPayload
from scell_sdk.webhooks import WebhookVerifier, parse_signature_header

SECRET = "whsec_test"
NOW = 1790000000


@pytest.fixture
def verifier():
    return WebhookVerifier(SECRET)


@pytest.fixture
def frozen_time():
    with patch("time.time", return_value=NOW):
        yield NOW


class TestGenerateSignature:
    """Test signature header generation."""

    def test_format_and_digest(self, verifier):
        payload = '{"event":"test"}'

        signature = verifier.generate_signature(payload, 1640995200)

        expected = hmac.new(
            SECRET.encode("utf-8"),
            f"1640995200.{payload}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        assert signature == f"t=1640995200,v1={expected}"

    def test_defaults_to_now(self, verifier, frozen_time):
        assert verifier.generate_signature("{}").startswith(f"t={NOW},v1=")

    def test_bytes_and_str_payloads_match(self, verifier):
        assert verifier.generate_signature(b'{"a":1}', 1) == verifier.generate_signature('{"a":1}', 1)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            WebhookVerifier("")

    def test_secret_not_in_repr(self, verifier):
        assert SECRET not in repr(verifier)


class TestVerify:
    """Test signature verification."""

    def test_round_trip(self, verifier, frozen_time):
        payload = '{"event":"test"}'

        result = verifier.verify(payload, verifier.generate_signature(payload, NOW))

        assert result == {"event": "test"}

    def test_accepts_bytes_payload(self, verifier, frozen_time):
        payload = b'{"event":"invoice.created","data":{"id":"inv_1"}}'

        result = verifier.verify(payload, verifier.generate_signature(payload))

        assert result == {"event": "invoice.created", "data": {"id": "inv_1"}}

    def test_within_tolerance(self, verifier, frozen_time):
        payload = '{"event":"test"}'

        assert verifier.verify(payload, verifier.generate_signature(payload, NOW - 300)) == {"event": "test"}
        assert verifier.verify(payload, verifier.generate_signature(payload, NOW + 300)) == {"event": "test"}

    def test_expired(self, verifier, frozen_time):
        payload = '{"event":"test"}'

        with pytest.raises(SignatureExpiredError):
            verifier.verify(payload, verifier.generate_signature(payload, NOW - 301), tolerance=300)

    def test_future_timestamp(self, verifier, frozen_time):
        payload = '{"event":"test"}'

        with pytest.raises(SignatureTimestampInFutureError):
            verifier.verify(payload, verifier.generate_signature(payload, NOW + 301))

    def test_custom_tolerance(self, verifier, frozen_time):
        payload = '{"event":"test"}'
        signature = verifier.generate_signature(payload, NOW - 60)

        with pytest.raises(SignatureExpiredError):
            verifier.verify(payload, signature, tolerance=30)
        assert verifier.verify(payload, signature, tolerance=120) == {"event": "test"}

    def test_altered_digest(self, verifier, frozen_time):
        payload = '{"event":"test"}'
        signature = verifier.generate_signature(payload, NOW)
        last = signature[-1]
        tampered = signature[:-1] + ("0" if last != "0" else "1")

        with pytest.raises(SignatureMismatchError):
            verifier.verify(payload, tampered)

    def test_altered_payload(self, verifier, frozen_time):
        signature = verifier.generate_signature('{"amount":100}', NOW)

        with pytest.raises(SignatureMismatchError):
            verifier.verify('{"amount":1000}', signature)

    def test_wrong_secret(self, frozen_time):
        payload = '{"event":"test"}'
        signature = WebhookVerifier("whsec_other").generate_signature(payload, NOW)

        with pytest.raises(SignatureMismatchError):
            WebhookVerifier(SECRET).verify(payload, signature)

    def test_timestamp_is_signed(self, verifier, frozen_time):
        payload = '{"event":"test"}'
        digest = verifier.generate_signature(payload, NOW).split("v1=")[1]

        with pytest.raises(SignatureMismatchError):
            verifier.verify(payload, f"t={NOW - 1},v1={digest}")

    @pytest.mark.parametrize(
        "header",
        ["", "garbage", "t=123", "v1=abc", "x=1,y=2", "t,v1"],
    )
    def test_malformed_header(self, verifier, header):
        with pytest.raises(SignatureFormatError):
            verifier.verify("{}", header)

    def test_non_integer_timestamp(self, verifier):
        with pytest.raises(SignatureFormatError):
            verifier.verify("{}", "t=yesterday,v1=abc")

    def test_pair_order_and_extra_keys_ignored(self, verifier, frozen_time):
        payload = '{"event":"test"}'
        digest = verifier.generate_signature(payload, NOW).split("v1=")[1]

        header = f"v0=legacy, v1={digest} ,scheme=hmac, t={NOW}"

        assert verifier.verify(payload, header) == {"event": "test"}

    def test_invalid_json_payload(self, verifier, frozen_time):
        payload = "not json"

        with pytest.raises(PayloadFormatError):
            verifier.verify(payload, verifier.generate_signature(payload, NOW))

    def test_invalid_utf8_payload(self, verifier, frozen_time):
        with pytest.raises(PayloadFormatError):
            verifier.verify(b"\xff\xfe", f"t={NOW},v1=00")

    def test_errors_share_root(self):
        for error_cls in (
            SignatureFormatError,
            SignatureExpiredError,
            SignatureTimestampInFutureError,
            SignatureMismatchError,
            PayloadFormatError,
        ):
            assert issubclass(error_cls, WebhookVerificationError)
            assert issubclass(error_cls, ScellError)


class TestVerifyIgnoringTimestamp:
    """Test the replay/test verification path."""

    def test_old_signature_accepted(self, verifier):
        payload = '{"event":"test"}'
        signature = verifier.generate_signature(payload, 1000)

        assert verifier.verify_ignoring_timestamp(payload, signature) == {"event": "test"}

    def test_still_checks_digest(self, verifier):
        with pytest.raises(SignatureMismatchError):
            verifier.verify_ignoring_timestamp('{"event":"test"}', "t=1000,v1=deadbeef")

    def test_default_verify_rejects_same_signature(self, verifier):
        payload = '{"event":"test"}'

        with pytest.raises(SignatureExpiredError):
            verifier.verify(payload, verifier.generate_signature(payload, 1000))


class TestIsValid:
    """Test the boolean verification helper."""

    def test_valid(self, verifier):
        payload = '{"event":"test"}'
        assert verifier.is_valid(payload, verifier.generate_signature(payload)) is True

    @pytest.mark.parametrize(
        "header",
        ["", ",,,", "=", "t=", "v1=", "t=abc,v1=def", "t=1,v1=2", "t==,v1==", "\x00", None, 42],
    )
    def test_malformed_headers_return_false(self, verifier, header):
        assert verifier.is_valid('{"event":"test"}', header) is False

    def test_expired_returns_false(self, verifier):
        payload = '{"event":"test"}'
        signature = verifier.generate_signature(payload, int(time.time()) - 3600)

        assert verifier.is_valid(payload, signature) is False

    def test_invalid_json_returns_false(self, verifier):
        assert verifier.is_valid("{", verifier.generate_signature("{")) is False


class TestConstructEvent:
    """Test typed webhook payload parsing."""

    def test_typed_payload(self, verifier, frozen_time):
        payload = json.dumps(
            {
                "event": "signature.completed",
                "timestamp": "2026-10-18T10:00:00Z",
                "data": {"id": "sig_1", "signers": 2},
                "delivery_id": "dlv_1",
            }
        )

        event = verifier.construct_event(payload, verifier.generate_signature(payload))

        assert isinstance(event, WebhookPayload)
        assert event.event is WebhookEvent.SIGNATURE_COMPLETED
        assert event.delivery_id == "dlv_1"
        assert event.data == {"id": "sig_1", "signers": 2}
        assert event.is_signature_event()
        assert not event.is_invoice_event()

    def test_unknown_event_rejected(self, verifier, frozen_time):
        payload = json.dumps({"event": "unknown.event", "timestamp": "2026-10-18T10:00:00Z"})

        with pytest.raises(PayloadFormatError):
            verifier.construct_event(payload, verifier.generate_signature(payload))


class TestFromSettings:
    """Test settings-based construction."""

    def test_from_settings(self, frozen_time):
        verifier = WebhookVerifier.from_settings(ScellSettings(webhook_secret=SECRET))
        payload = '{"event":"test"}'

        assert verifier.verify(payload, WebhookVerifier(SECRET).generate_signature(payload)) == {"event": "test"}

    def test_missing_secret(self):
        with pytest.raises(ValueError):
            WebhookVerifier.from_settings(ScellSettings(webhook_secret=None))


def test_parse_signature_header():
    assert parse_signature_header("t=1,v1=abc=def, extra ,x=") == {"t": "1", "v1": "abc=def", "x": ""}
