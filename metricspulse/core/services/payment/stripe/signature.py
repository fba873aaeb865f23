"""
Stripe webhook request verification.

Checks request metadata and the ``Stripe-Signature`` header over the exact
raw body. Verification has no side effects.
"""

import stripe

from metricspulse.core.config import settings, webhook_logger
from metricspulse.core.exceptions.types import (
    InternalException,
    InvalidSignatureException,
    InvalidWebhookMetadataException,
    MissingSignatureException,
    PayloadTooLargeException,
)

SIGNATURE_HEADER = "Stripe-Signature"


def check_content_length(content_length: str | None, max_bytes: int) -> None:
    """
    Reject a declared body length that is malformed or over ``max_bytes``.

    Raises:
        InvalidWebhookMetadataException: The header is not a non-negative integer.
        PayloadTooLargeException: The declared length exceeds the cap.
    """
    if content_length is None:
        return
    try:
        declared = int(content_length)
    except ValueError:
        raise InvalidWebhookMetadataException("Invalid Content-Length header")
    if declared < 0:
        raise InvalidWebhookMetadataException("Invalid Content-Length header")
    if declared > max_bytes:
        raise PayloadTooLargeException()


def check_content_type(content_type: str | None) -> None:
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type != "application/json":
        raise InvalidWebhookMetadataException("Content-Type must be application/json")


def verify_webhook_request(
    payload: bytes,
    signature: str | None,
    content_type: str | None,
    content_length: str | None = None,
    secret: str | None = None,
    tolerance: int | None = None,
    max_bytes: int | None = None,
) -> None:
    """
    Verify that a webhook request is authentic and acceptable.

    Args:
        payload: Exact raw request body.
        signature: Value of the ``Stripe-Signature`` header.
        content_type: Value of the ``Content-Type`` header.
        content_length: Value of the ``Content-Length`` header, if sent.
        secret: Webhook signing secret. Defaults to STRIPE_WEBHOOK_SECRET.
        tolerance: Max age of the signed timestamp in seconds.
        max_bytes: Max body size in bytes.

    Raises:
        MissingSignatureException: No signature header.
        InvalidWebhookMetadataException: Unacceptable content type or length header.
        PayloadTooLargeException: Body over the size cap.
        InvalidSignatureException: Signature mismatch, malformed header or stale timestamp.
        InternalException: No signing secret is configured.
    """
    secret = secret if secret is not None else settings.STRIPE_WEBHOOK_SECRET
    tolerance = tolerance if tolerance is not None else settings.WEBHOOK_SIGNATURE_TOLERANCE_SECONDS
    max_bytes = max_bytes if max_bytes is not None else settings.WEBHOOK_MAX_BODY_BYTES

    if not signature or not signature.strip():
        raise MissingSignatureException()

    check_content_type(content_type)
    check_content_length(content_length, max_bytes)
    if len(payload) > max_bytes:
        raise PayloadTooLargeException()

    if not secret or not secret.strip():
        webhook_logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        raise InternalException("Webhook secret is not configured.")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, secret, tolerance
        )
    except UnicodeDecodeError as exc:
        webhook_logger.warning("Webhook payload is not valid UTF-8")
        raise InvalidSignatureException() from exc
    except stripe.SignatureVerificationError as exc:
        webhook_logger.warning(f"Webhook signature verification failed: {exc}")
        raise InvalidSignatureException() from exc


__all__ = [
    "SIGNATURE_HEADER",
    "check_content_length",
    "check_content_type",
    "verify_webhook_request",
]
