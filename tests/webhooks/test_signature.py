"""
Tests for webhook signing and event validation.
"""

import base64
import hashlib
import hmac

import pytest

from core.exceptions import InvalidEventTypeError
from webhooks.events import ALL_EVENT_TYPES, validate_event_type, validate_event_types
from webhooks.signature import WebhookSignatureService


@pytest.fixture
def signatures():
    return WebhookSignatureService()


class TestSignature:

    def test_known_vector(self, signatures):
        payload = '{"event":"data.changed"}'
        expected = hmac.new(b"s3cret", payload.encode("utf-8"), hashlib.sha256).hexdigest()

        assert signatures.generate_signature(payload, "s3cret") == expected

    def test_verify(self, signatures):
        signature = signatures.generate_signature("body", "key")

        assert signatures.verify_signature("body", signature, "key")
        assert signatures.verify_signature("body", signature.upper(), "key")
        assert not signatures.verify_signature("body ", signature, "key")
        assert not signatures.verify_signature("body", signature, "other")
        assert not signatures.verify_signature("body", "", "key")

    def test_generated_secrets(self, signatures):
        secret = signatures.generate_signing_secret()
        token = signatures.generate_verification_token()

        assert len(base64.b64decode(secret)) == 32
        assert len(base64.b64decode(token)) == 16
        assert secret != signatures.generate_signing_secret()


class TestEventTypes:

    def test_closed_set(self):
        assert len(ALL_EVENT_TYPES) == 7
        assert validate_event_type("export.failed") == "export.failed"

    def test_unknown_rejected(self):
        with pytest.raises(InvalidEventTypeError):
            validate_event_type("data.deleted")

    def test_duplicates_dropped_in_order(self):
        assert validate_event_types(["approval.granted", "data.changed", "approval.granted"]) == [
            "approval.granted",
            "data.changed",
        ]

    def test_one_bad_event_rejects_all(self):
        with pytest.raises(InvalidEventTypeError):
            validate_event_types(["data.changed", "nope"])
