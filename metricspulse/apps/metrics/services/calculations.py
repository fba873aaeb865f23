"""
SaaS metric formulas.

Pure functions over raw Stripe objects. Every function validates only the
fields it needs, so a malformed field affects a single metric.

Formulas
--------
MRR               = sum(unit_amount * quantity) over monthly items of active subscriptions
Active customers  = customers with at least one active or trialing subscription
Churn rate        = baseline * clamp(1000 / active_customers, 0.5, 2), capped at 0.5
LTV               = MRR / churn_rate when 0 < churn_rate < 1
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from metricspulse.core.config import metrics_logger
from metricspulse.core.services.payment.stripe.types import Customer, Subscription

LIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})

MAX_MRR = Decimal("100000000")
MAX_LTV = Decimal("10000000")
MAX_ACTIVE_CUSTOMERS = 1_000_000
MAX_CHURN_RATE = Decimal("0.5")

CHURN_REFERENCE_CUSTOMERS = Decimal("1000")
CHURN_SCALE_MIN = Decimal("0.5")
CHURN_SCALE_MAX = Decimal("2")

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")


def clamp(value, lower, upper):
    return max(lower, min(value, upper))


def round_currency(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return value.quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def calculate_mrr(subscriptions: Iterable[dict[str, Any]]) -> Decimal:
    """
    Monthly recurring revenue in major currency units.

    Only ``active`` subscriptions count, and only items whose price recurs
    monthly. Amounts are divided by 100 unless the currency is zero-decimal.
    A negative total is stored as 0.

    Raises:
        pydantic.ValidationError: A subscription has malformed fields.
    """
    total = Decimal(0)
    for raw in subscriptions:
        subscription = Subscription.model_validate(raw)
        if subscription.status != "active":
            continue
        for item in subscription.items.data:
            price = item.price
            if not price.is_monthly:
                continue
            quantity = item.quantity if item.quantity is not None else 1
            amount = Decimal(price.unit_amount or 0) * quantity
            if not price.is_zero_decimal:
                amount = amount / 100
            total += amount

    if total < 0:
        metrics_logger.warning(f"Calculated negative MRR ({total}); storing 0")
        total = Decimal(0)

    return round_currency(clamp(total, Decimal(0), MAX_MRR))


def calculate_active_customers(customers: Iterable[dict[str, Any]]) -> int:
    """
    Count customers with at least one active or trialing subscription.

    Raises:
        pydantic.ValidationError: A customer has malformed fields.
    """
    count = 0
    for raw in customers:
        customer = Customer.model_validate(raw)
        if not customer.deleted and customer.has_live_subscription(
            LIVE_SUBSCRIPTION_STATUSES
        ):
            count += 1
    return clamp(count, 0, MAX_ACTIVE_CUSTOMERS)


def active_customers_from_subscriptions(
    subscriptions: Iterable[dict[str, Any]],
) -> int:
    """Count distinct customers owning an active or trialing subscription."""
    customer_ids = set()
    for raw in subscriptions:
        subscription = Subscription.model_validate(raw)
        if subscription.status in LIVE_SUBSCRIPTION_STATUSES:
            customer_ids.add(subscription.customer)
    return clamp(len(customer_ids), 0, MAX_ACTIVE_CUSTOMERS)


def calculate_churn_rate(
    active_customers: int, baseline: Decimal | float = Decimal("0.05")
) -> Decimal:
    """
    Heuristic monthly churn rate.

    Smaller customer bases get a higher estimate, larger ones a lower one.
    This is a placeholder until cancellations are tracked over time.

    Examples:
        >>> calculate_churn_rate(0)
        Decimal('0.0000')
        >>> calculate_churn_rate(1000)
        Decimal('0.0500')
        >>> calculate_churn_rate(100)
        Decimal('0.1000')
    """
    if active_customers <= 0:
        return round_rate(Decimal(0))
    scale = clamp(
        CHURN_REFERENCE_CUSTOMERS / Decimal(active_customers),
        CHURN_SCALE_MIN,
        CHURN_SCALE_MAX,
    )
    churn = min(Decimal(str(baseline)) * scale, MAX_CHURN_RATE)
    return round_rate(churn)


def calculate_ltv(mrr: Decimal, churn_rate: Decimal) -> Decimal:
    """
    Customer lifetime value as MRR divided by churn.

    Examples:
        >>> calculate_ltv(Decimal("100"), Decimal("0.05"))
        Decimal('2000.00')
        >>> calculate_ltv(Decimal("100"), Decimal("0"))
        Decimal('0.00')
    """
    if not (Decimal(0) < churn_rate < Decimal(1)):
        return round_currency(Decimal(0))
    ltv = Decimal(mrr) / churn_rate
    return round_currency(clamp(ltv, Decimal(0), MAX_LTV))


__all__ = [
    "LIVE_SUBSCRIPTION_STATUSES",
    "active_customers_from_subscriptions",
    "calculate_active_customers",
    "calculate_churn_rate",
    "calculate_ltv",
    "calculate_mrr",
    "round_currency",
    "round_rate",
]
