# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("PLATFORM_URL", "http://test")
os.environ.setdefault("PLATFORM_SERVICE_KEY", "test-service-key")
os.environ.setdefault("PLATFORM_PUBLIC_KEY", "test-public-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from waypost.core.settings import Settings
from waypost.main import create_app
from waypost.models import ROLE_ADMIN, ROLE_MEMBER
from waypost.platform import AuthUser, PlatformBackend, PlatformClient

TEST_SERVICE_KEY = "test-service-key"
TEST_PUBLIC_KEY = "test-public-key"
TEST_PASSWORD = "correct-horse"

AccountFactory = Callable[..., Awaitable[AuthUser]]


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at an in-memory store and a per-test blob root."""
    return Settings(
        PLATFORM_URL="http://test",
        PLATFORM_SERVICE_KEY=TEST_SERVICE_KEY,
        PLATFORM_PUBLIC_KEY=TEST_PUBLIC_KEY,
        DATABASE_URL="sqlite://",
        STORAGE_PATH=str(tmp_path / "storage"),
    )


@pytest.fixture()
def backend(test_settings: Settings) -> Iterator[PlatformBackend]:
    backend = PlatformBackend.from_settings(test_settings)
    backend.create_tables()
    try:
        yield backend
    finally:
        backend.dispose()


@pytest.fixture()
def service_platform(backend: PlatformBackend) -> PlatformClient:
    return backend.connect(TEST_SERVICE_KEY)


@pytest.fixture()
def public_platform(backend: PlatformBackend) -> PlatformClient:
    return backend.connect(TEST_PUBLIC_KEY)


@pytest.fixture()
def make_account(service_platform: PlatformClient) -> AccountFactory:
    """Return a coroutine function creating an identity plus its profile."""

    async def _make(
        email: str,
        username: str,
        *,
        role: str = ROLE_MEMBER,
        status: str = "offline",
        password: str = TEST_PASSWORD,
    ) -> AuthUser:
        user = await service_platform.auth.admin_create_user(email, password, email_confirm=True)
        await service_platform.profiles.insert(
            {"id": user.id, "username": username, "role": role, "status": status}
        )
        return user

    return _make


@pytest.fixture()
def app(test_settings: Settings, backend: PlatformBackend) -> FastAPI:
    return create_app(test_settings, backend)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def _sign_in(platform: PlatformClient, email: str) -> str:
    session = asyncio.run(platform.auth.sign_in_with_password(email, TEST_PASSWORD))
    return session.access_token


@pytest.fixture()
def admin_user(make_account: AccountFactory) -> AuthUser:
    return asyncio.run(make_account("admin@example.com", "admin", role=ROLE_ADMIN))


@pytest.fixture()
def member_user(make_account: AccountFactory) -> AuthUser:
    return asyncio.run(make_account("member@example.com", "member"))


@pytest.fixture()
def admin_headers(public_platform: PlatformClient, admin_user: AuthUser) -> dict[str, str]:
    return {"Authorization": f"Bearer {_sign_in(public_platform, admin_user.email)}"}


@pytest.fixture()
def member_headers(public_platform: PlatformClient, member_user: AuthUser) -> dict[str, str]:
    return {"Authorization": f"Bearer {_sign_in(public_platform, member_user.email)}"}
