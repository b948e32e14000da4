"""Exception handlers mapping relay errors to `{error}` JSON responses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tgrelay.errors import (
    AlreadyInProgressError,
    CodeAlreadySubmittedError,
    ConnectFailureError,
    InvalidArgumentError,
    NoPendingRegistrationError,
    NotRegisteredError,
    PhoneMismatchError,
    RateLimitedError,
    RegistrationTimeoutError,
    RelayError,
    TelegramRejectedError,
)
from tgrelay.storage.errors import StorageError

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

RELAY_ERROR_STATUS: dict[type[RelayError], int] = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    NotRegisteredError: status.HTTP_404_NOT_FOUND,
    AlreadyInProgressError: status.HTTP_409_CONFLICT,
    NoPendingRegistrationError: status.HTTP_409_CONFLICT,
    PhoneMismatchError: status.HTTP_409_CONFLICT,
    CodeAlreadySubmittedError: status.HTTP_409_CONFLICT,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    ConnectFailureError: status.HTTP_502_BAD_GATEWAY,
    TelegramRejectedError: status.HTTP_502_BAD_GATEWAY,
    RegistrationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def _get_error_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def status_for(exc: RelayError) -> int:
    """Most specific status code registered for exc's class."""
    for cls in type(exc).__mro__:
        if cls in RELAY_ERROR_STATUS:
            return RELAY_ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def relay_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate a RelayError raised by the service layer."""
    if not isinstance(exc, RelayError):
        return await general_exception_handler(request, exc)

    status_code = status_for(exc)
    logger.warning(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc} "
        f"(request_id={_get_error_id(request)})"
    )
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content={"error": str(exc)}, headers=headers)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Missing or malformed body fields are a 400 with a readable message."""
    if not isinstance(exc, RequestValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    problems = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location)
        problems.append(f"`{field}`: {error.get('msg')}" if field else str(error.get("msg")))

    logger.warning(
        f"Validation error on {request.url.path}: {problems} "
        f"(request_id={_get_error_id(request)})"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body: " + "; ".join(problems)},
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        return await general_exception_handler(request, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=exc.headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions with production-safe error messages."""
    error_id = _get_error_id(request)
    logger.exception(
        f"Unhandled exception in {request.method} {request.url.path} (request_id={error_id}): {exc}"
    )

    settings = getattr(request.app.state, "settings", None)
    debug_mode = getattr(settings, "debug", False)

    message = (
        f"Internal server error: {type(exc).__name__}: {exc}"
        if debug_mode
        else "An internal error occurred. Please try again later."
    )
    if isinstance(exc, StorageError) and not debug_mode:
        message = "Failed to access persisted data."

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message, "request_id": error_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers."""
    app.add_exception_handler(RelayError, relay_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
