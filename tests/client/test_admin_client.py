# tests/client/test_admin_client.py
"""Tests for the admin API client against the in-process application."""

import httpx
import pytest

from waypost.client import AdminApiClient, AdminApiError
from waypost.models import ROLE_ADMIN

from conftest import TEST_PASSWORD


async def _admin_client(app, public_platform, make_account) -> AdminApiClient:
    await make_account("root@example.com", "root", role=ROLE_ADMIN)
    session = await public_platform.auth.sign_in_with_password("root@example.com", TEST_PASSWORD)
    return AdminApiClient(
        "http://test",
        session.access_token,
        transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.asyncio
async def test_full_account_lifecycle(app, public_platform, make_account):
    async with await _admin_client(app, public_platform, make_account) as admin:
        assert await admin.health() == {"status": "ok"}

        user_id = await admin.create_user("new@example.com", "secret1", "newbie")
        updated = await admin.update_user(user_id, username="renamed")
        assert updated["username"] == "renamed"

        rows = await admin.list_users()
        assert {row["id"]: row["email"] for row in rows}[user_id] == "new@example.com"

        await admin.delete_user(user_id)
        assert user_id not in {row["id"] for row in await admin.list_users()}


@pytest.mark.asyncio
async def test_error_body_becomes_exception(app, public_platform, make_account):
    async with await _admin_client(app, public_platform, make_account) as admin:
        with pytest.raises(AdminApiError) as exc_info:
            await admin.create_user("x@example.com", "secret1", "")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Email, password, and username are required"


@pytest.mark.asyncio
async def test_bad_token_is_unauthorized(app):
    admin = AdminApiClient("http://test", "bogus", transport=httpx.ASGITransport(app=app))
    try:
        with pytest.raises(AdminApiError) as exc_info:
            await admin.list_users()
    finally:
        await admin.close()

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid token"


@pytest.mark.asyncio
async def test_transport_failure_is_wrapped():
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    admin = AdminApiClient("http://test", "t", transport=httpx.MockTransport(_refuse))
    with pytest.raises(AdminApiError, match="Request failed"):
        await admin.health()
    await admin.close()
