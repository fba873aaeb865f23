from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from metricspulse.core.db.models.base import BaseModel
from metricspulse.core.enums import SubscriptionStatus


class BillingSubscription(BaseModel):
    """
    Local mirror of a provider subscription, maintained from webhook events.

    Attributes:
        workspace_id: Workspace whose connected account owns the subscription.
        provider_subscription_id: Provider subscription ID (``sub_...``).
        provider_customer_id: Provider customer ID (``cus_...``).
        provider_price_id: Price of the first subscription item, if any.
        status: Internal subscription status.
        current_period_end: End of the current billing period.
        cancel_at_period_end: Whether cancellation is scheduled.
    """

    __tablename__ = "billing_subscriptions"

    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    provider_subscription_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        index=True,
    )

    provider_customer_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        index=True,
    )

    provider_price_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, native_enum=False, name="subscription_status"),
        nullable=False,
        default=SubscriptionStatus.UNKNOWN,
    )

    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def __repr__(self) -> str:
        return (
            f"<BillingSubscription(id={self.provider_subscription_id}, "
            f"status={self.status})>"
        )


__all__ = ["BillingSubscription"]
