"""
Workspace and Connection models.

A workspace is the tenant boundary: it owns its provider connections and
its metric snapshots. Connections are written by the OAuth flow and only
read by the webhook and metrics pipeline.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from metricspulse.core.db.models.base import BaseModel
from metricspulse.core.enums import ConnectionProvider

if TYPE_CHECKING:
    from metricspulse.core.db.models.metric_snapshot import MetricSnapshot


class Workspace(BaseModel):
    """
    Model for workspaces (one per user).

    Attributes:
        user_id: Identifier of the owning user (issued by the auth provider).
        name: Human-readable workspace name.
    """

    __tablename__ = "workspaces"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        unique=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="My Workspace",
    )

    connections: Mapped[list["Connection"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    metric_snapshots: Mapped[list["MetricSnapshot"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Workspace(id={self.id}, user_id={self.user_id})>"


class Connection(BaseModel):
    """
    Model for stored provider credentials bound to a workspace.

    Attributes:
        workspace_id: Owning workspace.
        provider: External provider (stripe, google_analytics, manual).
        access_token: Provider access token (for Stripe Connect, the secret key
            of the connected account).
        refresh_token: Provider refresh token.
        provider_account_id: Provider-side account identifier (``acct_...``).
        connected_at: When the OAuth flow completed.
        expires_at: When the access token expires, if the provider says so.
        provider_metadata: Raw provider metadata.
    """

    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "provider", name="uq_connections_workspace_provider"
        ),
    )

    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    provider: Mapped[ConnectionProvider] = mapped_column(
        Enum(ConnectionProvider, native_enum=False, name="connection_provider"),
        nullable=False,
    )

    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    provider_account_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        index=True,
        comment="Provider-side account ID (Stripe Connect acct_...)",
    )

    connected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    provider_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    workspace: Mapped["Workspace"] = relationship(back_populates="connections")

    @property
    def has_usable_token(self) -> bool:
        return bool(self.access_token and self.access_token.strip())

    def __repr__(self) -> str:
        return (
            f"<Connection(id={self.id}, workspace_id={self.workspace_id}, "
            f"provider={self.provider})>"
        )


__all__ = ["Workspace", "Connection"]
