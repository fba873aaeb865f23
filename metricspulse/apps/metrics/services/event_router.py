"""
Static routing of Stripe event types to domain handlers.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import UUID

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.apps.metrics.schemas.events import EventEnvelope, TypedEvent
from metricspulse.apps.metrics.services.handlers import (
    handle_customer_event,
    handle_invoice_event,
    handle_price_event,
    handle_subscription_event,
)
from metricspulse.core.config import webhook_logger
from metricspulse.core.enums import EventCategory
from metricspulse.core.exceptions.types import ValidationException

Handler = Callable[[AsyncSession, Any], Awaitable[UUID | None]]


@dataclass(frozen=True)
class EventRoute:
    """
    Where an event type goes.

    Attributes:
        category: Event category, which selects the typed payload model.
        handler: Domain handler for the category.
        recalculates: Whether a handled event triggers metric recalculation.
    """

    category: EventCategory
    handler: Handler
    recalculates: bool


SUBSCRIPTION_ROUTE = EventRoute(EventCategory.SUBSCRIPTION, handle_subscription_event, True)
INVOICE_ROUTE = EventRoute(EventCategory.INVOICE, handle_invoice_event, True)
CUSTOMER_ROUTE = EventRoute(EventCategory.CUSTOMER, handle_customer_event, False)
PRICE_ROUTE = EventRoute(EventCategory.PRICE, handle_price_event, False)


# ============================================================================
# Event Type to Route Mapping
# ============================================================================

EVENT_ROUTES: dict[str, EventRoute] = {
    "customer.subscription.created": SUBSCRIPTION_ROUTE,
    "customer.subscription.updated": SUBSCRIPTION_ROUTE,
    "customer.subscription.deleted": SUBSCRIPTION_ROUTE,
    "customer.subscription.paused": SUBSCRIPTION_ROUTE,
    "customer.subscription.resumed": SUBSCRIPTION_ROUTE,
    "customer.subscription.trial_will_end": SUBSCRIPTION_ROUTE,
    "invoice.paid": INVOICE_ROUTE,
    "invoice.payment_succeeded": INVOICE_ROUTE,
    "invoice.payment_failed": INVOICE_ROUTE,
    "customer.created": CUSTOMER_ROUTE,
    "customer.updated": CUSTOMER_ROUTE,
    "customer.deleted": CUSTOMER_ROUTE,
    "price.created": PRICE_ROUTE,
    "price.updated": PRICE_ROUTE,
    "price.deleted": PRICE_ROUTE,
}

_typed_event_adapter = TypeAdapter(TypedEvent)


def route(event_type: str) -> EventRoute | None:
    """Look up the route for an event type; None for types we do not handle."""
    return EVENT_ROUTES.get(event_type)


def decode(envelope: EventEnvelope, event_route: EventRoute) -> Any:
    """
    Decode a raw event into the typed model for its category.

    Raises:
        ValidationException: The event object lacks required fields or has
            malformed ones.
    """
    try:
        return _typed_event_adapter.validate_python(
            {
                "category": event_route.category,
                "id": envelope.id,
                "type": envelope.type,
                "account": envelope.account,
                "object": envelope.data.get("object"),
            }
        )
    except ValidationError as e:
        errors = [
            {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
            for error in e.errors()
        ]
        webhook_logger.warning(
            f"Event {envelope.id} ({envelope.type}) failed validation: {errors}"
        )
        raise ValidationException(
            f"Invalid {event_route.category.value} event payload",
            details={"errors": errors},
        ) from e


__all__ = ["EVENT_ROUTES", "EventRoute", "decode", "route"]
