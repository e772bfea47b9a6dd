"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``main.py`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` and the
request log records the final status code after errors are mapped.

``CitewiseError`` subclasses become JSON :class:`ErrorResponse` bodies:

    NotFoundError            -> 404
    UnsupportedFileTypeError -> 415
    anything else            -> 500

Stack traces and provider details are logged, never returned.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import CitewiseError, NotFoundError, UnsupportedFileTypeError
from src.utils.logging import bind_context, clear_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[CitewiseError], int], ...] = (
    (NotFoundError, 404),
    (UnsupportedFileTypeError, 415),
)


def status_for(exc: CitewiseError) -> int:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; ``["*"]`` when no origins are configured."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None
        bind_context(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex[:12])

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=duration_ms,
            )
            clear_context("request_id")


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``CitewiseError`` subclasses into structured JSON errors."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except CitewiseError as exc:
            status_code = status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
