"""
Authentication dependencies for FastAPI endpoints.

- Extracting and validating JWT access tokens from requests
- Resolving the workspace owned by the authenticated user

Example usage:
    from metricspulse.core.dependencies.auth import CurrentWorkspace

    @router.get("/metrics")
    async def list_metrics(workspace: CurrentWorkspace):
        return {"workspace_id": str(workspace.id)}
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.core.config import auth_logger
from metricspulse.core.db.crud import workspace_db
from metricspulse.core.db.models import Workspace
from metricspulse.core.dependencies.db import get_async_session
from metricspulse.core.exceptions.types import (
    AuthenticationException,
    WorkspaceNotFoundException,
)
from metricspulse.core.utils import decode_jwt_token

# auto_error=False so a missing header raises our own 401 instead of FastAPI's default
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> UUID:
    """
    Extract and validate the JWT access token from the Authorization header.

    Returns:
        UUID: The user ID carried in the token's ``sub`` claim.

    Raises:
        AuthenticationException: 401 if the token is missing, invalid, or expired.
    """
    if credentials is None:
        auth_logger.warning("Authentication failed: missing bearer token")
        raise AuthenticationException("Not authenticated")

    payload = decode_jwt_token(credentials.credentials)
    if payload is None:
        auth_logger.warning("Authentication failed: invalid or expired token")
        raise AuthenticationException("Invalid or expired access token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        auth_logger.warning("Authentication failed: token missing 'sub' claim")
        raise AuthenticationException("Invalid access token")

    try:
        return UUID(str(user_id_str))
    except ValueError:
        auth_logger.warning(
            f"Authentication failed: invalid user ID format '{user_id_str}'"
        )
        raise AuthenticationException("Invalid access token")


async def get_current_workspace(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Workspace:
    """
    Resolve the workspace owned by the authenticated user.

    Raises:
        WorkspaceNotFoundException: 404 if the user has no workspace.
    """
    async with session.begin():
        workspace = await workspace_db.get_by_user_id(session, user_id)

    if workspace is None:
        auth_logger.warning(f"Workspace lookup failed: no workspace for user {user_id}")
        raise WorkspaceNotFoundException()

    auth_logger.debug(f"Workspace resolved: {workspace.id} for user {user_id}")
    return workspace


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentWorkspace = Annotated[Workspace, Depends(get_current_workspace)]
