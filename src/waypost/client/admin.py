"""HTTP client for the admin API, as used by an administration console."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from waypost.client.errors import AdminApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class AdminApiClient:
    """Async wrapper around the ``/api`` endpoints for one administrator token."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> AdminApiClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any | None = None,
        authenticated: bool = True,
    ) -> Any:
        client = await self._ensure_client()
        headers = {"Authorization": f"Bearer {self.access_token}"} if authenticated else {}
        try:
            response = await client.request(method, path, json=json_data, headers=headers)
        except httpx.HTTPError as exc:
            raise AdminApiError(0, f"Request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = payload.get("error") if isinstance(payload, dict) else None
            logger.debug("%s %s -> %s", method, path, response.status_code)
            raise AdminApiError(response.status_code, message or response.reason_phrase)
        return payload

    async def health(self) -> dict[str, Any]:
        result: dict[str, Any] = await self._request("GET", "/api/health", authenticated=False)
        return result

    async def list_users(self) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._request("GET", "/api/users")
        return result

    async def create_user(self, email: str, password: str, username: str) -> str:
        """Create an account and return the new user id."""
        result = await self._request(
            "POST",
            "/api/users",
            json_data={"email": email, "password": password, "username": username},
        )
        return str(result["userId"])

    async def update_user(
        self,
        user_id: str,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if username is not None:
            body["username"] = username
        if avatar_url is not None:
            body["avatar_url"] = avatar_url
        result: dict[str, Any] = await self._request("PATCH", f"/api/users/{user_id}", json_data=body)
        return result

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/api/users/{user_id}")
