# src/waypost/api/endpoints/users.py
"""Administrator account management endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from waypost.api.dependencies import CurrentAdminDep, PlatformDep
from waypost.models import PRESENCE_OFFLINE
from waypost.platform import PlatformClient, PlatformError
from waypost.schemas.users import (
    AdminUserCreate,
    AdminUserCreated,
    AdminUserUpdate,
    MessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users", "admin"])


def _internal_error(err: Exception, fallback: str = "Internal server error") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(err) or fallback,
    )


def _merge_emails(
    profiles: list[dict[str, Any]],
    emails: dict[str, str],
) -> list[dict[str, Any]]:
    """Left-join identity emails onto profiles by id."""
    return [{**profile, "email": emails.get(profile["id"])} for profile in profiles]


async def _compensate_orphaned_identity(platform: PlatformClient, user_id: str) -> None:
    try:
        await platform.auth.admin_delete_user(user_id)
        logger.info("Removed identity %s after its profile could not be created", user_id)
    except PlatformError as err:
        logger.error("Identity %s left without a profile: %s", user_id, err)


@router.get("")
async def list_users(platform: PlatformDep, admin: CurrentAdminDep) -> list[dict[str, Any]]:
    """Return every profile with the owning identity's email attached."""
    try:
        try:
            profiles = await platform.profiles.list()
        except PlatformError as err:
            logger.error("Error fetching profiles: %s", err)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error fetching profiles: {err}",
            ) from err

        try:
            identities = await platform.auth.admin_list_users()
        except PlatformError as err:
            logger.error("Error fetching users: %s", err)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error fetching users: {err}",
            ) from err

        emails = {identity.id: identity.email for identity in identities}
        return _merge_emails(profiles, emails)
    except HTTPException:
        raise
    except Exception as err:
        logger.error("Error fetching users: %s", err, exc_info=True)
        raise _internal_error(err) from err


@router.post("", status_code=status.HTTP_201_CREATED, response_model=AdminUserCreated)
async def create_user(
    platform: PlatformDep,
    admin: CurrentAdminDep,
    payload: AdminUserCreate | None = None,
) -> AdminUserCreated:
    """Create a pre-confirmed identity and its offline profile.

    The two writes are independent. When the profile insert fails the new
    identity is deleted again so no identity is left without a profile.
    """
    payload = payload or AdminUserCreate()
    if not payload.email or not payload.password or not payload.username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email, password, and username are required",
        )

    try:
        try:
            user = await platform.auth.admin_create_user(
                payload.email,
                payload.password,
                email_confirm=True,
            )
        except PlatformError as err:
            raise _internal_error(err) from err

        try:
            await platform.profiles.insert(
                {"id": user.id, "username": payload.username, "status": PRESENCE_OFFLINE}
            )
        except PlatformError as err:
            logger.error("Profile creation failed for %s: %s", user.id, err)
            await _compensate_orphaned_identity(platform, user.id)
            raise _internal_error(err) from err

        logger.info("Administrator %s created user %s", admin.id, user.id)
        return AdminUserCreated(message="User created successfully", user_id=user.id)
    except HTTPException:
        raise
    except Exception as err:
        logger.error("Error creating user: %s", err, exc_info=True)
        raise _internal_error(err) from err


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    platform: PlatformDep,
    admin: CurrentAdminDep,
    payload: AdminUserUpdate | None = None,
) -> dict[str, Any]:
    """Change a profile's username and/or avatar."""
    values = (payload or AdminUserUpdate()).model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update",
        )
    if "username" in values and not (values["username"] or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is required",
        )

    try:
        try:
            updated = await platform.profiles.update(user_id, values)
        except PlatformError as err:
            raise _internal_error(err) from err
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return updated
    except HTTPException:
        raise
    except Exception as err:
        logger.error("Error updating user: %s", err, exc_info=True)
        raise _internal_error(err) from err


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    platform: PlatformDep,
    admin: CurrentAdminDep,
) -> MessageResponse:
    """Delete an identity; its profile goes with it through the store's cascade."""
    try:
        try:
            await platform.auth.admin_delete_user(user_id)
        except PlatformError as err:
            raise _internal_error(err) from err
        logger.info("Administrator %s deleted user %s", admin.id, user_id)
        return MessageResponse(message="User deleted successfully")
    except HTTPException:
        raise
    except Exception as err:
        logger.error("Error deleting user: %s", err, exc_info=True)
        raise _internal_error(err) from err
