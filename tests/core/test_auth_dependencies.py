"""
Tests for the authentication dependencies.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from metricspulse.core.dependencies.auth import (
    get_current_user_id,
    get_current_workspace,
)
from metricspulse.core.exceptions.types import (
    AuthenticationException,
    WorkspaceNotFoundException,
)
from metricspulse.core.utils import create_jwt_token


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentUserId:

    async def test_missing_credentials(self):
        with pytest.raises(AuthenticationException, match="Not authenticated"):
            await get_current_user_id(None)

    async def test_invalid_token(self):
        with pytest.raises(AuthenticationException, match="Invalid or expired"):
            await get_current_user_id(bearer("garbage"))

    async def test_expired_token(self):
        token = create_jwt_token({"sub": str(uuid4())}, timedelta(seconds=-5))
        with pytest.raises(AuthenticationException):
            await get_current_user_id(bearer(token))

    async def test_missing_sub(self):
        token = create_jwt_token({"email": "a@example.com"})
        with pytest.raises(AuthenticationException, match="Invalid access token"):
            await get_current_user_id(bearer(token))

    async def test_non_uuid_sub(self):
        token = create_jwt_token({"sub": "not-a-uuid"})
        with pytest.raises(AuthenticationException, match="Invalid access token"):
            await get_current_user_id(bearer(token))

    async def test_valid_token(self):
        user_id = uuid4()
        token = create_jwt_token({"sub": str(user_id)})
        assert await get_current_user_id(bearer(token)) == user_id


class TestGetCurrentWorkspace:

    async def test_resolves_owned_workspace(self, workspace, db_session):
        resolved = await get_current_workspace(workspace.user_id, db_session)
        assert resolved.id == workspace.id

    async def test_user_without_workspace(self, db_session):
        with pytest.raises(WorkspaceNotFoundException):
            await get_current_workspace(uuid4(), db_session)
