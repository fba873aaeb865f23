"""
Domain handlers for typed webhook events.

Each handler resolves the workspace the event belongs to, applies the
changes it owns, and returns the workspace ID (or None when the event cannot
be attributed to a workspace).
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.apps.metrics.schemas.events import (
    CustomerEvent,
    InvoiceEvent,
    PriceEvent,
    SubscriptionEvent,
)
from metricspulse.core.config import webhook_logger
from metricspulse.core.db.crud import billing_subscription_db, connection_db
from metricspulse.core.enums import SubscriptionStatus

STRIPE_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "incomplete_expired": SubscriptionStatus.INCOMPLETE_EXPIRED,
    "past_due": SubscriptionStatus.PAST_DUE,
    "trialing": SubscriptionStatus.TRIALING,
    "unpaid": SubscriptionStatus.UNPAID,
}


def map_subscription_status(status: str | None) -> SubscriptionStatus:
    """Map a Stripe subscription status to the internal status (``paused`` and unknown values become ``unknown``)."""
    if status is None:
        return SubscriptionStatus.UNKNOWN
    return STRIPE_STATUS_MAP.get(status, SubscriptionStatus.UNKNOWN)


async def resolve_workspace(
    session: AsyncSession,
    account: str | None,
    customer_id: str | None = None,
) -> UUID | None:
    """
    Find the workspace an event belongs to.

    Connect events carry the connected account ID, which maps to the
    workspace's Stripe connection. Events without an account fall back to a
    subscription already tracked for the same customer.
    """
    if account:
        connection = await connection_db.get_by_provider_account(session, account)
        return connection.workspace_id if connection else None
    if customer_id:
        return await billing_subscription_db.get_workspace_for_customer(
            session, customer_id
        )
    return None


def _unresolved(event_id: str, event_type: str, account: str | None) -> None:
    webhook_logger.warning(
        f"No workspace for event {event_id} ({event_type}), account={account or 'N/A'}; skipping"
    )


async def handle_subscription_event(
    session: AsyncSession, event: SubscriptionEvent
) -> UUID | None:
    """
    Mirror the subscription's state into BillingSubscription.

    Args:
        session: Database session inside an open transaction.
        event: Decoded subscription event.

    Returns:
        The workspace ID, or None if the event could not be attributed.
    """
    subscription = event.object
    workspace_id = await resolve_workspace(
        session, event.account, subscription.customer
    )
    if workspace_id is None:
        _unresolved(event.id, event.type, event.account)
        return None

    status = map_subscription_status(subscription.status)
    if status == SubscriptionStatus.UNKNOWN:
        webhook_logger.info(
            f"Subscription {subscription.id} has unmapped status {subscription.status!r}"
        )

    await billing_subscription_db.sync(
        session,
        {
            "workspace_id": workspace_id,
            "provider_subscription_id": subscription.id,
            "provider_customer_id": subscription.customer,
            "provider_price_id": subscription.first_price_id,
            "status": status,
            "current_period_end": subscription.current_period_end,
            "cancel_at_period_end": subscription.cancel_at_period_end,
        },
        commit_self=False,
    )
    webhook_logger.info(
        f"Subscription {subscription.id} synced: workspace={workspace_id} status={status.value}"
    )
    return workspace_id


async def handle_invoice_event(
    session: AsyncSession, event: InvoiceEvent
) -> UUID | None:
    invoice = event.object
    workspace_id = await resolve_workspace(session, event.account, invoice.customer)
    if workspace_id is None:
        _unresolved(event.id, event.type, event.account)
        return None
    webhook_logger.info(
        f"Invoice {invoice.id} ({event.type}) for workspace={workspace_id}"
    )
    return workspace_id


async def handle_customer_event(
    session: AsyncSession, event: CustomerEvent
) -> UUID | None:
    workspace_id = await resolve_workspace(session, event.account, event.object.id)
    if workspace_id is None:
        _unresolved(event.id, event.type, event.account)
    return workspace_id


async def handle_price_event(
    session: AsyncSession, event: PriceEvent
) -> UUID | None:
    workspace_id = await resolve_workspace(session, event.account)
    if workspace_id is None:
        _unresolved(event.id, event.type, event.account)
    return workspace_id


__all__ = [
    "STRIPE_STATUS_MAP",
    "handle_customer_event",
    "handle_invoice_event",
    "handle_price_event",
    "handle_subscription_event",
    "map_subscription_status",
    "resolve_workspace",
]
