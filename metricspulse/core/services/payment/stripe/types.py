from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "bif",
        "clp",
        "djf",
        "gnf",
        "jpy",
        "kmf",
        "krw",
        "mga",
        "pyg",
        "rwf",
        "ugx",
        "vnd",
        "vuv",
        "xaf",
        "xof",
        "xpf",
    }
)


def coerce_timestamp_to_datetime(ts: Any) -> Any:
    """Converts a Unix timestamp (in seconds) to a UTC datetime."""
    if isinstance(ts, int):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return ts


def coerce_expandable_to_id(value: Any) -> Any:
    """Expandable fields arrive either as an ID string or as the expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


StripeTimestamp = Annotated[datetime, BeforeValidator(coerce_timestamp_to_datetime)]
ExpandableId = Annotated[str, BeforeValidator(coerce_expandable_to_id)]


class StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ListResponse(StripeObject):
    has_more: bool = False
    data: list[dict[str, Any]] = []


class Recurring(StripeObject):
    interval: str
    interval_count: int = 1


class Price(StripeObject):
    id: str
    currency: str = "usd"
    unit_amount: int | None = None
    recurring: Recurring | None = None

    @property
    def is_monthly(self) -> bool:
        return self.recurring is not None and self.recurring.interval == "month"

    @property
    def is_zero_decimal(self) -> bool:
        return self.currency.lower() in ZERO_DECIMAL_CURRENCIES


class SubscriptionItem(StripeObject):
    id: str | None = None
    price: Price
    quantity: int | None = 1


class SubscriptionItemList(StripeObject):
    data: list[SubscriptionItem] = []


class Subscription(StripeObject):
    id: str
    customer: ExpandableId
    status: str
    items: SubscriptionItemList = Field(default_factory=SubscriptionItemList)
    current_period_end: StripeTimestamp | None = None
    cancel_at_period_end: bool = False


class CustomerSubscription(StripeObject):
    id: str
    status: str


class CustomerSubscriptionList(StripeObject):
    data: list[CustomerSubscription] = []


class Customer(StripeObject):
    id: str
    email: str | None = None
    subscriptions: CustomerSubscriptionList | None = None
    deleted: bool = False

    def has_live_subscription(self, statuses: frozenset[str]) -> bool:
        if self.subscriptions is None:
            return False
        return any(sub.status in statuses for sub in self.subscriptions.data)


__all__ = [
    "ZERO_DECIMAL_CURRENCIES",
    "ExpandableId",
    "StripeTimestamp",
    "ListResponse",
    "Recurring",
    "Price",
    "SubscriptionItem",
    "SubscriptionItemList",
    "Subscription",
    "CustomerSubscription",
    "CustomerSubscriptionList",
    "Customer",
]
