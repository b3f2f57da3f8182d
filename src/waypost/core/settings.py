"""Application settings and configuration.

This module defines all configuration options for the Waypost application.
Settings are loaded from environment variables with sensible defaults; the
three platform values have no default and must be provided.
"""

import logging
import sys

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

REQUIRED_PLATFORM_VARIABLES = (
    "PLATFORM_URL",
    "PLATFORM_SERVICE_KEY",
    "PLATFORM_PUBLIC_KEY",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Waypost", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3001, alias="PORT")

    # Platform access. The service key is privileged and server-side only;
    # the public key is what end-user clients connect with.
    platform_url: str = Field(alias="PLATFORM_URL")
    platform_service_key: str = Field(alias="PLATFORM_SERVICE_KEY")
    platform_public_key: str = Field(alias="PLATFORM_PUBLIC_KEY")

    # Backing store of the built-in platform
    database_url: str = Field(default="sqlite:///./waypost.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    storage_path: str = Field(default="./storage", alias="STORAGE_PATH")

    # Identity tokens
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Client behaviour
    location_sample_interval_seconds: float = Field(
        default=60.0,
        alias="LOCATION_SAMPLE_INTERVAL_SECONDS",
    )
    avatar_max_bytes: int = Field(default=5 * 1024 * 1024, alias="AVATAR_MAX_BYTES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=[
            "Origin",
            "X-Requested-With",
            "Content-Type",
            "Accept",
            "Authorization",
        ],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


def _missing_variables(error: ValidationError) -> list[str]:
    missing = []
    for item in error.errors():
        if item.get("type") != "missing":
            continue
        name = str(item["loc"][0]) if item.get("loc") else ""
        missing.append(name)
    return missing


def load_settings() -> Settings:
    """Build settings, exiting the process when platform values are absent."""
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        missing = _missing_variables(exc)
        if missing:
            logger.error("Missing platform environment variables: %s", ", ".join(missing))
        else:
            logger.error("Invalid configuration: %s", exc)
        sys.exit(1)
