"""
CRUD operations for Workspace and Connection models.
"""

from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.core.db.crud.base import BaseDB
from metricspulse.core.db.models.workspace import Connection, Workspace
from metricspulse.core.enums import ConnectionProvider


class WorkspaceDB(BaseDB[Workspace]):
    """CRUD operations for Workspace model."""

    def __init__(self):
        super().__init__(Workspace)

    async def get_by_user_id(
        self, session: AsyncSession, user_id: UUID
    ) -> Workspace | None:
        return await self.get_one_by_filters(session, {"user_id": user_id})


class ConnectionDB(BaseDB[Connection]):
    """CRUD operations for Connection model."""

    def __init__(self):
        super().__init__(Connection)

    async def get_for_workspace(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        provider: ConnectionProvider = ConnectionProvider.STRIPE,
    ) -> Connection | None:
        """
        Get the workspace's connection for a provider.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            provider: Provider to look up. Defaults to Stripe.

        Returns:
            The connection or None if the workspace is not connected.
        """
        return await self.get_one_by_filters(
            session, {"workspace_id": workspace_id, "provider": provider}
        )

    async def get_by_provider_account(
        self,
        session: AsyncSession,
        provider_account_id: str,
        provider: ConnectionProvider = ConnectionProvider.STRIPE,
    ) -> Connection | None:
        """
        Get the connection bound to a provider-side account ID.

        Used to resolve which workspace a Stripe Connect event belongs to.
        """
        return await self.get_one_by_filters(
            session,
            {"provider_account_id": provider_account_id, "provider": provider},
        )

    async def get_connected_workspace_ids(
        self,
        session: AsyncSession,
        provider: ConnectionProvider = ConnectionProvider.STRIPE,
    ) -> Sequence[UUID]:
        """
        Get the IDs of workspaces holding a connection for the provider,
        oldest connection first.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        connections = await self.get_by_filters(
            session, {"provider": provider}, order_by=[Connection.created_at]
        )
        return [connection.workspace_id for connection in connections]

    async def connect(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        access_token: str,
        provider_account_id: str | None = None,
        provider: ConnectionProvider = ConnectionProvider.STRIPE,
        commit_self: bool = True,
    ) -> Connection:
        """
        Create or replace the workspace's connection for a provider.

        Returns:
            The stored connection.
        """
        connection, _ = await self.upsert(
            session,
            {
                "workspace_id": workspace_id,
                "provider": provider,
                "access_token": access_token,
                "provider_account_id": provider_account_id,
                "connected_at": datetime.now(timezone.utc),
            },
            unique_fields=["workspace_id", "provider"],
            commit_self=commit_self,
        )
        return connection
