from enum import Enum


class ConnectionProvider(str, Enum):
    """External providers a workspace can be connected to."""

    STRIPE = "stripe"
    GOOGLE_ANALYTICS = "google_analytics"
    MANUAL = "manual"


class MetricName(str, Enum):
    """Metrics recorded as daily snapshots."""

    MRR = "mrr"
    CHURN_RATE = "churn_rate"
    LTV = "ltv"
    ACTIVE_CUSTOMERS = "active_customers"
    CAC = "cac"
    CONVERSION_RATE = "conversion_rate"
    NET_REVENUE_RETENTION = "net_revenue_retention"


class SubscriptionStatus(str, Enum):
    """Internal status of a billing subscription observed through webhooks."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    UNKNOWN = "unknown"


class EventCategory(str, Enum):
    """Category an inbound provider event is tagged with by the router."""

    SUBSCRIPTION = "subscription"
    INVOICE = "invoice"
    CUSTOMER = "customer"
    PRICE = "price"


class WebhookOutcome(str, Enum):
    """Status reported back to the webhook sender."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    PROCESSING_FAILED = "processing_failed"
