"""
CRUD operations for BillingSubscription model.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.core.db.crud.base import BaseDB
from metricspulse.core.db.models.billing_subscription import BillingSubscription


class BillingSubscriptionDB(BaseDB[BillingSubscription]):
    """CRUD operations for BillingSubscription model."""

    def __init__(self):
        super().__init__(BillingSubscription)

    async def get_by_provider_id(
        self, session: AsyncSession, provider_subscription_id: str
    ) -> BillingSubscription | None:
        return await self.get_one_by_filters(
            session, {"provider_subscription_id": provider_subscription_id}
        )

    async def get_workspace_for_customer(
        self, session: AsyncSession, provider_customer_id: str
    ) -> UUID | None:
        """
        Get the workspace that already tracks a subscription for this customer.

        Returns:
            The workspace ID, or None if the customer is unknown.
        """
        subscription = await self.get_one_by_filters(
            session, {"provider_customer_id": provider_customer_id}
        )
        return subscription.workspace_id if subscription else None

    async def sync(
        self,
        session: AsyncSession,
        data: dict[str, Any],
        commit_self: bool = True,
    ) -> tuple[BillingSubscription, bool]:
        """
        Insert or update the local copy of a provider subscription.

        Args:
            session: Database session.
            data: Column values; must include ``provider_subscription_id``.
            commit_self: Whether to commit after the operation.

        Returns:
            A tuple of (subscription, created).
        """
        return await self.upsert(
            session,
            data,
            unique_fields=["provider_subscription_id"],
            exclude_from_update=["workspace_id"],
            commit_self=commit_self,
        )
