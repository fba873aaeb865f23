"""
Tests for Stripe webhook request verification.
"""

import hashlib
import hmac
import json
import time

import pytest

from metricspulse.core.exceptions.types import (
    InternalException,
    InvalidSignatureException,
    InvalidWebhookMetadataException,
    MissingSignatureException,
    PayloadTooLargeException,
)
from metricspulse.core.services.payment.stripe.signature import (
    check_content_length,
    verify_webhook_request,
)

SECRET = "whsec_unit"
PAYLOAD = json.dumps({"id": "evt_1", "type": "invoice.paid"}).encode()


class TestVerifyWebhookRequest:

    def test_valid_signature(self, sign_payload):
        verify_webhook_request(
            PAYLOAD,
            sign_payload(PAYLOAD, SECRET),
            "application/json",
            str(len(PAYLOAD)),
            secret=SECRET,
        )

    def test_content_type_with_charset(self, sign_payload):
        verify_webhook_request(
            PAYLOAD,
            sign_payload(PAYLOAD, SECRET),
            "application/json; charset=utf-8",
            secret=SECRET,
        )

    @pytest.mark.parametrize("signature", [None, "", "   "])
    def test_missing_signature(self, signature):
        with pytest.raises(MissingSignatureException):
            verify_webhook_request(PAYLOAD, signature, "application/json", secret=SECRET)

    def test_wrong_content_type(self, sign_payload):
        with pytest.raises(InvalidWebhookMetadataException):
            verify_webhook_request(
                PAYLOAD, sign_payload(PAYLOAD, SECRET), "text/plain", secret=SECRET
            )

    def test_wrong_secret(self, sign_payload):
        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD,
                sign_payload(PAYLOAD, "whsec_other"),
                "application/json",
                secret=SECRET,
            )

    def test_tampered_body(self, sign_payload):
        signature = sign_payload(PAYLOAD, SECRET)
        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD + b" ", signature, "application/json", secret=SECRET
            )

    def test_stale_timestamp(self, sign_payload):
        signature = sign_payload(PAYLOAD, SECRET, timestamp=int(time.time()) - 301)
        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD, signature, "application/json", secret=SECRET, tolerance=300
            )

    def test_malformed_header(self):
        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD, "garbage", "application/json", secret=SECRET
            )

    def test_oversized_body(self, sign_payload):
        payload = b"{" + b" " * 20 + b"}"
        with pytest.raises(PayloadTooLargeException):
            verify_webhook_request(
                payload,
                sign_payload(payload, SECRET),
                "application/json",
                secret=SECRET,
                max_bytes=10,
            )

    def test_missing_secret_is_internal_error(self, sign_payload):
        with pytest.raises(InternalException):
            verify_webhook_request(
                PAYLOAD, sign_payload(PAYLOAD, SECRET), "application/json", secret=""
            )


class TestCheckContentLength:

    def test_absent_header_passes(self):
        check_content_length(None, 10)

    @pytest.mark.parametrize("value", ["abc", "-1"])
    def test_malformed_header(self, value):
        with pytest.raises(InvalidWebhookMetadataException):
            check_content_length(value, 10)

    def test_over_limit(self):
        with pytest.raises(PayloadTooLargeException):
            check_content_length("11", 10)

    def test_at_limit(self):
        check_content_length("10", 10)


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def _flip_hex(char: str) -> str:
    return "0" if char != "0" else "1"


def _flip_digit(char: str) -> str:
    return str((int(char) + 1) % 10)


class TestSingleByteMutation:

    @pytest.mark.parametrize("position", [0, 1, 17, 31, 32, 62, 63])
    def test_mutated_digest_fails(self, position):
        timestamp = int(time.time())
        digest = compute_signature(PAYLOAD, SECRET, timestamp)
        mutated = digest[:position] + _flip_hex(digest[position]) + digest[position + 1:]

        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD, f"t={timestamp},v1={mutated}", "application/json", secret=SECRET
            )

    @pytest.mark.parametrize("position", [0, 4, -1])
    def test_mutated_timestamp_fails(self, position):
        timestamp = str(int(time.time()))
        digest = compute_signature(PAYLOAD, SECRET, int(timestamp))
        index = position % len(timestamp)
        mutated = timestamp[:index] + _flip_digit(timestamp[index]) + timestamp[index + 1:]

        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(
                PAYLOAD, f"t={mutated},v1={digest}", "application/json", secret=SECRET
            )

    @pytest.mark.parametrize("position", [0, len(PAYLOAD) // 2, len(PAYLOAD) - 1])
    def test_mutated_payload_fails(self, position):
        timestamp = int(time.time())
        signature = f"t={timestamp},v1={compute_signature(PAYLOAD, SECRET, timestamp)}"
        replacement = b"x" if PAYLOAD[position:position + 1] != b"x" else b"y"
        mutated = PAYLOAD[:position] + replacement + PAYLOAD[position + 1:]

        with pytest.raises(InvalidSignatureException):
            verify_webhook_request(mutated, signature, "application/json", secret=SECRET)
