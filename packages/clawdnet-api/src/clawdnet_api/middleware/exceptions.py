"""Exception handlers translating ClawdNet errors into wire responses.

Every ``ClawdnetException`` carries its own status, body and headers, so the
handler is a straight projection. Validation errors become 422 with field
details; anything unhandled is logged with traceback and answered with a
generic 500 that leaks no internals.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clawdnet_core.exceptions import ClawdnetException, ForwardFailureError

logger = logging.getLogger(__name__)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", "unknown")


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""

    @app.exception_handler(ClawdnetException)
    async def clawdnet_exception_handler(request: Request, exc: ClawdnetException) -> JSONResponse:
        level = logging.WARNING if isinstance(exc, ForwardFailureError) else logging.INFO
        logger.log(
            level,
            f"{exc.error_code}: {exc.message}",
            extra={"request_id": get_request_id(request), "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Validation error: {len(errors)} field(s) failed",
            extra={"request_id": get_request_id(request), "path": request.url.path},
        )
        return JSONResponse(status_code=422, content={"error": "Invalid request", "details": errors})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.url.path}",
            extra={"request_id": get_request_id(request)},
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
