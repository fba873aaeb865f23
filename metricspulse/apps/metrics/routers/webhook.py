"""
Stripe webhook receiver.

Verifies the request, then hands the raw body to the webhook processor.
Processing failures are acknowledged with 200 so Stripe does not keep
redelivering an event that will fail the same way; only unexpected faults
return 500.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from metricspulse.apps.metrics.services.webhook_processor import WebhookProcessor
from metricspulse.core.config import settings, webhook_logger
from metricspulse.core.dependencies.state import get_idempotency_cache
from metricspulse.core.exceptions.types import AppException, PayloadTooLargeException
from metricspulse.core.services.idempotency import IdempotencyCache
from metricspulse.core.services.payment.stripe.signature import (
    SIGNATURE_HEADER,
    check_content_length,
    verify_webhook_request,
)


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


async def read_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, stopping as soon as it grows past ``max_bytes``.

    Chunked requests carry no Content-Length, so the cap is enforced while
    streaming rather than after buffering.

    Raises:
        PayloadTooLargeException: The body exceeds ``max_bytes``.
    """
    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            webhook_logger.warning(
                f"Webhook body exceeded {max_bytes} bytes while streaming; rejecting"
            )
            raise PayloadTooLargeException()
        chunks.append(chunk)
    return b"".join(chunks)


def get_webhook_processor(
    idempotency_cache: Annotated[IdempotencyCache, Depends(get_idempotency_cache)],
) -> WebhookProcessor:
    return WebhookProcessor(idempotency_cache)


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Receive Stripe webhook events",
    description="""
## Stripe Webhook Receiver

Receives signed Stripe events, including events from connected accounts.

### Responses

| Status | Body | Meaning |
|--------|------|---------|
| 200 | `{received, eventId, eventType}` | Event processed |
| 200 | `... status: "duplicate"` | Event already processed within 24h |
| 200 | `... status: "ignored"` | Event type not handled |
| 200 | `... status: "processing_failed", error` | Handling or recalculation failed |
| 400 | `{detail, code}` | Missing/invalid signature, bad content type, malformed event |
| 413 | `{detail, code}` | Body larger than 1 MiB |
| 500 | `{error}` | Unexpected internal fault |
""",
)
async def handle_stripe_webhook(
    request: Request,
    processor: Annotated[WebhookProcessor, Depends(get_webhook_processor)],
) -> Any:
    """Verify and process a Stripe webhook delivery."""
    signature = request.headers.get(SIGNATURE_HEADER)
    content_type = request.headers.get("content-type")
    content_length = request.headers.get("content-length")

    # Reject oversized bodies by header before reading them
    check_content_length(content_length, settings.WEBHOOK_MAX_BODY_BYTES)
    payload = await read_body(request, settings.WEBHOOK_MAX_BODY_BYTES)

    verify_webhook_request(
        payload,
        signature,
        content_type,
        content_length,
    )

    try:
        return await processor.process(payload)
    except AppException:
        raise
    except Exception as e:
        webhook_logger.exception(f"Unexpected error processing webhook: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


@router.api_route(
    "/stripe",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def stripe_webhook_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed"},
        headers={"Allow": "POST"},
    )


__all__ = ["router", "get_webhook_processor", "read_body"]
