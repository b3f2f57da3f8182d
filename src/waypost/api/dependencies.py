"""Shared API dependencies for platform access and admin authorization."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from waypost.models import ROLE_ADMIN
from waypost.platform import AuthError, AuthUser, PlatformClient, PlatformError

logger = logging.getLogger(__name__)

# Missing or malformed headers are reported by get_current_admin itself.
bearer_scheme = HTTPBearer(auto_error=False)


def get_platform(request: Request) -> PlatformClient:
    """Return the privileged platform client attached to the application."""
    platform: PlatformClient = request.app.state.platform
    return platform


PlatformDep = Annotated[PlatformClient, Depends(get_platform)]


async def get_current_admin(
    request: Request,
    platform: PlatformDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthUser:
    """Authorize the caller as an administrator.

    Args:
        request: Incoming request, used to tell a missing header from a malformed one
        platform: Privileged platform client
        credentials: Parsed bearer credentials, or None

    Returns:
        The caller's identity

    Raises:
        HTTPException: 401 for missing/invalid credentials, 403 for non-admins,
            500 when the profile lookup fails
    """
    if not request.headers.get("Authorization"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
        )
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        try:
            user = await platform.auth.get_user(credentials.credentials)
        except AuthError as err:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token",
            ) from err

        try:
            profile = await platform.profiles.get(user.id)
        except PlatformError as err:
            logger.error("Error fetching profile for %s: %s", user.id, err)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error fetching user profile",
            ) from err

        if profile is None or profile.get("role") != ROLE_ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized",
            )
        return user
    except HTTPException:
        raise
    except Exception as err:
        logger.error("Auth error: %s", err, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication failed",
        ) from err


# Type alias for the authorized administrator dependency
CurrentAdminDep = Annotated[AuthUser, Depends(get_current_admin)]
