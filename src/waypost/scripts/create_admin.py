# src/waypost/scripts/create_admin.py
"""Bootstrap an administrator account.

The admin API only accepts callers whose profile role is ``admin``, so the
first administrator has to be created out of band. This script does that
with the service credential:

    waypost-create-admin --email admin@example.com --password secret --username admin
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from waypost.core.logging import configure_logging
from waypost.core.settings import Settings, load_settings
from waypost.models import PRESENCE_OFFLINE, ROLE_ADMIN
from waypost.platform import PlatformBackend, PlatformError

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a Waypost administrator account.")
    parser.add_argument("--email", required=True, help="Login email of the administrator")
    parser.add_argument("--password", required=True, help="Initial password (min. 6 characters)")
    parser.add_argument("--username", required=True, help="Display name of the administrator")
    return parser.parse_args(argv)


async def create_admin(
    backend: PlatformBackend,
    settings: Settings,
    *,
    email: str,
    password: str,
    username: str,
) -> str:
    """Create a confirmed identity with an admin profile and return its id.

    If the profile cannot be written the identity is removed again.
    """
    platform = backend.connect(settings.platform_service_key)
    user = await platform.auth.admin_create_user(
        email,
        password,
        email_confirm=True,
        metadata={"username": username},
    )
    try:
        await platform.profiles.insert(
            {
                "id": user.id,
                "username": username,
                "status": PRESENCE_OFFLINE,
                "role": ROLE_ADMIN,
            }
        )
    except PlatformError:
        await platform.auth.admin_delete_user(user.id)
        raise
    return user.id


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    backend = PlatformBackend.from_settings(settings)
    backend.create_tables()
    try:
        user_id = asyncio.run(
            create_admin(
                backend,
                settings,
                email=args.email,
                password=args.password,
                username=args.username,
            )
        )
    except PlatformError as exc:
        logger.error("Could not create administrator: %s", exc)
        return 1
    finally:
        backend.dispose()

    logger.info("Created administrator %s (%s)", args.email, user_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
