"""
Typed inbound webhook events.

The router decodes each raw Stripe event once into one of these models,
selected by the event's category. Handlers only ever see typed events.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from metricspulse.core.enums import EventCategory
from metricspulse.core.services.payment.stripe.types import (
    ExpandableId,
    Recurring,
    StripeTimestamp,
    SubscriptionItemList,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class EventEnvelope(BaseModel):
    """Fields every Stripe event carries, validated before routing."""

    model_config = ConfigDict(extra="ignore")

    id: NonEmptyStr
    type: NonEmptyStr
    account: str | None = None
    created: int | None = None
    livemode: bool = False
    data: dict[str, Any] = {}


class EventObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: NonEmptyStr


class SubscriptionObject(EventObject):
    customer: ExpandableId
    status: str | None = None
    items: SubscriptionItemList | None = None
    current_period_end: StripeTimestamp | None = None
    cancel_at_period_end: bool = False

    @property
    def first_price_id(self) -> str | None:
        if self.items and self.items.data:
            return self.items.data[0].price.id
        return None


class InvoiceObject(EventObject):
    customer: ExpandableId
    subscription: ExpandableId | None = None
    status: str | None = None
    amount_paid: int | None = None
    currency: str | None = None


class CustomerObject(EventObject):
    email: str | None = None
    deleted: bool = False


class PriceObject(EventObject):
    product: ExpandableId | None = None
    currency: str | None = None
    unit_amount: int | None = None
    recurring: Recurring | None = None
    active: bool | None = None


class BaseEvent(BaseModel):
    id: str
    type: str
    account: str | None = None


class SubscriptionEvent(BaseEvent):
    category: Literal[EventCategory.SUBSCRIPTION]
    object: SubscriptionObject


class InvoiceEvent(BaseEvent):
    category: Literal[EventCategory.INVOICE]
    object: InvoiceObject


class CustomerEvent(BaseEvent):
    category: Literal[EventCategory.CUSTOMER]
    object: CustomerObject


class PriceEvent(BaseEvent):
    category: Literal[EventCategory.PRICE]
    object: PriceObject


TypedEvent = Annotated[
    Union[SubscriptionEvent, InvoiceEvent, CustomerEvent, PriceEvent],
    Field(discriminator="category"),
]


__all__ = [
    "EventEnvelope",
    "SubscriptionObject",
    "InvoiceObject",
    "CustomerObject",
    "PriceObject",
    "SubscriptionEvent",
    "InvoiceEvent",
    "CustomerEvent",
    "PriceEvent",
    "TypedEvent",
]
