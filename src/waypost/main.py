# src/waypost/main.py
"""Main entry point for the Waypost admin API."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from waypost.api.endpoints import system_router, users_router
from waypost.api.errors import install_cors, register_error_handlers
from waypost.core.logging import configure_logging
from waypost.core.settings import Settings, load_settings
from waypost.platform import PlatformBackend

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    backend: PlatformBackend | None = None,
) -> FastAPI:
    """Build the admin API around an explicitly constructed platform backend."""
    settings = settings or load_settings()
    backend = backend or PlatformBackend.from_settings(settings)

    app = FastAPI(
        title="Waypost Admin API",
        description="Account administration for the Waypost location and messaging service",
        version=settings.app_version,
    )
    app.state.settings = settings
    app.state.backend = backend
    app.state.platform = backend.connect(settings.platform_service_key)

    register_error_handlers(app)
    install_cors(
        app,
        origins=settings.cors_origins,
        methods=settings.cors_allow_methods,
        headers=settings.cors_allow_headers,
    )

    app.include_router(system_router, prefix="/api")
    app.include_router(users_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup() -> None:
        backend.create_tables()
        logger.info("%s %s ready", settings.app_name, settings.app_version)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        backend.dispose()

    return app


def run() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    import uvicorn

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
