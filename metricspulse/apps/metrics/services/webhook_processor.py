"""
Webhook processing pipeline.

Runs a verified webhook body through the idempotency cache, the event
router and the domain handler, then recalculates metrics under the retry
controller when the event category calls for it.
"""

import json
import time
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metricspulse.apps.metrics.schemas.events import EventEnvelope
from metricspulse.apps.metrics.services.event_router import decode, route
from metricspulse.apps.metrics.services.recalculator import (
    MetricsRecalculator,
    metrics_recalculator,
)
from metricspulse.core.config import webhook_logger
from metricspulse.core.db import AsyncSessionLocal
from metricspulse.core.enums import WebhookOutcome
from metricspulse.core.exceptions.types import AppException, BadRequestException
from metricspulse.core.services.idempotency import IdempotencyCache
from metricspulse.core.services.retry import RetryController


def parse_envelope(payload: bytes) -> EventEnvelope:
    """
    Parse the raw body into an event envelope.

    Raises:
        BadRequestException: The body is not JSON or lacks an event id or type.
    """
    try:
        body = json.loads(payload)
    except ValueError:
        webhook_logger.warning("Webhook body is not valid JSON")
        raise BadRequestException("Invalid JSON payload")

    if not isinstance(body, dict) or not body.get("id") or not body.get("type"):
        webhook_logger.warning("Webhook missing event id or type")
        raise BadRequestException("Missing event id or type")

    try:
        return EventEnvelope.model_validate(body)
    except ValidationError:
        webhook_logger.warning("Webhook envelope failed validation")
        raise BadRequestException("Missing event id or type")


class WebhookProcessor:
    """
    Processes one verified webhook delivery.

    An event id is recorded in the idempotency cache only after it has been
    handled successfully or acknowledged as ignored, so failed deliveries are
    processed again when the provider retries them.
    """

    def __init__(
        self,
        idempotency_cache: IdempotencyCache,
        retry_controller: RetryController | None = None,
        recalculator: MetricsRecalculator = metrics_recalculator,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.idempotency_cache = idempotency_cache
        self.retry_controller = retry_controller or RetryController()
        self.recalculator = recalculator
        self.session_factory = session_factory

    async def process(self, payload: bytes) -> dict[str, Any]:
        """
        Process a verified webhook body.

        Returns:
            The acknowledgment body: ``received``, ``eventId``, ``eventType``
            and, for anything other than a fully processed event, ``status``
            (plus ``error`` when processing failed).

        Raises:
            BadRequestException: The body is not a usable event.
        """
        started = time.monotonic()
        envelope = parse_envelope(payload)
        ack: dict[str, Any] = {
            "received": True,
            "eventId": envelope.id,
            "eventType": envelope.type,
        }

        webhook_logger.info(f"Received webhook: {envelope.type} ({envelope.id})")

        if await self.idempotency_cache.seen(envelope.id):
            webhook_logger.info(f"Duplicate webhook {envelope.id}; skipping")
            return {**ack, "status": WebhookOutcome.DUPLICATE.value}

        event_route = route(envelope.type)
        if event_route is None:
            webhook_logger.info(f"Unhandled event type: {envelope.type} ({envelope.id})")
            await self.idempotency_cache.record(envelope.id)
            return {**ack, "status": WebhookOutcome.IGNORED.value}

        workspace_id: UUID | None = None
        try:
            event = decode(envelope, event_route)
            async with self.session_factory.begin() as session:
                workspace_id = await event_route.handler(session, event)

            if event_route.recalculates and workspace_id is not None:
                target = workspace_id
                await self.retry_controller.execute(
                    lambda: self.recalculator.recalculate(target),
                    operation_name="recalculate_metrics",
                    context={"workspace_id": target, "event_id": envelope.id},
                )
        except AppException as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            webhook_logger.error(
                f"Webhook processing failed: event={envelope.id} type={envelope.type} "
                f"workspace={workspace_id or 'N/A'} error={type(e).__name__}: {e} "
                f"processing_time_ms={elapsed_ms}"
            )
            return {
                **ack,
                "status": WebhookOutcome.PROCESSING_FAILED.value,
                "error": e.message,
            }

        await self.idempotency_cache.record(envelope.id)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        webhook_logger.info(
            f"Webhook processed: event={envelope.id} type={envelope.type} "
            f"workspace={workspace_id or 'N/A'} processing_time_ms={elapsed_ms}"
        )
        return ack


__all__ = ["WebhookProcessor", "parse_envelope"]
