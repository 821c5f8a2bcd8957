"""
Error mapping for the reminder engine HTTP surface.

Engine errors keep their ``to_dict()`` body and get a status code by type; every
other failure is answered with the same ``{"error", "message", "status_code"}``
envelope so the secretary panel parses a single shape.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from reminder_engine.core.domain.exceptions import (
    AlertAlreadyResolved,
    EntityNotFoundError,
    InvalidTransition,
    MissingVariable,
    NoChannelAvailable,
    RateLimited,
    ReminderEngineError,
    TransportError,
)

logger = logging.getLogger(__name__)

# First match wins; subclasses before their bases
ERROR_STATUS_CODES: list[tuple[type[ReminderEngineError], int]] = [
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (AlertAlreadyResolved, status.HTTP_409_CONFLICT),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (NoChannelAvailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
    (MissingVariable, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_code_for(exc: ReminderEngineError) -> int:
    for exc_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def _envelope(status_code: int, message: Any, headers: dict[str, str] | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "message": message, "status_code": status_code, **extra},
        headers=headers,
    )


async def reminder_engine_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Engine errors: status by type, body from ``to_dict()``."""
    if not isinstance(exc, ReminderEngineError):
        return await unhandled_exception_handler(request, exc)

    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, HTTPException):
        return await unhandled_exception_handler(request, exc)
    return _envelope(exc.status_code, exc.detail, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Request body/query errors, one entry per offending field."""
    if not isinstance(exc, RequestValidationError):
        return _envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    details = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Rejected request to {request.url.path}: {details}")
    return _envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", details=details)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback, never leak internals."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!s}", exc_info=True)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReminderEngineError, reminder_engine_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
