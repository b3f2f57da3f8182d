# tests/v1/test_dependencies.py
"""Tests for API dependencies module."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from waypost.api.dependencies import get_current_admin, get_platform
from waypost.platform import AuthUser, InvalidTokenError, StoreError


def _request(authorization: str | None) -> MagicMock:
    request = MagicMock()
    request.headers = {"Authorization": authorization} if authorization else {}
    return request


def _platform(*, user: AuthUser | None = None, profile=None, profile_error=None) -> MagicMock:
    platform = MagicMock()
    platform.auth.get_user = AsyncMock(return_value=user)
    if profile_error is not None:
        platform.profiles.get = AsyncMock(side_effect=profile_error)
    else:
        platform.profiles.get = AsyncMock(return_value=profile)
    return platform


ADMIN = AuthUser(id="u-1", email="root@example.com")


def _bearer(token: str = "token") -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentAdmin:
    """Test the get_current_admin dependency function."""

    @pytest.mark.asyncio
    async def test_admin_is_returned(self):
        platform = _platform(user=ADMIN, profile={"id": "u-1", "role": "admin"})

        result = await get_current_admin(_request("Bearer token"), platform, _bearer())

        assert result == ADMIN
        platform.auth.get_user.assert_awaited_once_with("token")

    @pytest.mark.asyncio
    async def test_missing_header(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request(None), _platform(), None)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "No authorization header"

    @pytest.mark.asyncio
    async def test_malformed_header(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request("Token abc"), _platform(), None)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Invalid authorization header format"

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        platform = _platform()
        platform.auth.get_user.side_effect = InvalidTokenError("expired")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request("Bearer token"), platform, _bearer())

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
        assert exc_info.value.detail == "Invalid token"

    @pytest.mark.asyncio
    async def test_profile_lookup_failure(self):
        platform = _platform(user=ADMIN, profile_error=StoreError("boom"))

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request("Bearer token"), platform, _bearer())

        assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc_info.value.detail == "Error fetching user profile"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("profile", [None, {"id": "u-1", "role": "member"}])
    async def test_non_admin_is_forbidden(self, profile):
        platform = _platform(user=ADMIN, profile=profile)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request("Bearer token"), platform, _bearer())

        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN
        assert exc_info.value.detail == "Not authorized"

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        platform = _platform()
        platform.auth.get_user.side_effect = RuntimeError("socket closed")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_request("Bearer token"), platform, _bearer())

        assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc_info.value.detail == "Authentication failed"


def test_get_platform_reads_app_state():
    request = MagicMock()
    request.app.state.platform = sentinel = object()
    assert get_platform(request) is sentinel
