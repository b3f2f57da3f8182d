"""Error rendering and CORS headers for the admin API.

Every error response body has the shape ``{"error": <message>}``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


def install_cors(
    app: FastAPI,
    *,
    origins: Sequence[str],
    methods: Sequence[str],
    headers: Sequence[str],
) -> None:
    """Add permissive CORS headers to every response and answer OPTIONS directly."""
    allow_origin = "*" if "*" in origins else ", ".join(origins)
    cors_headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ", ".join(headers),
        "Access-Control-Allow-Methods": ", ".join(methods),
    }

    @app.middleware("http")
    async def cors_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method == "OPTIONS":
            response: Response = JSONResponse(status_code=status.HTTP_200_OK, content={})
        else:
            response = await call_next(request)
        response.headers.update(cors_headers)
        return response
