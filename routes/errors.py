"""
Operational errors and the JSON error envelope.

Every error a client can see leaves the API as
``{"success": false, "error": "..."}`` with a conventional status code.
Expected failures are raised as ``AppError`` subclasses from route and
dependency code; anything else is treated as a programming error.
"""
import logging
from typing import Optional, Dict

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """An expected failure carrying a status code and a user-safe message."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=message or type(self).message,
            headers=headers,
        )


# ========== Authentication ==========

class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials"


class AccountLocked(AppError):
    status_code = status.HTTP_423_LOCKED
    message = "Account is temporarily locked"


class AccountDeactivated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Account is deactivated"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized to access this route"


class InvalidToken(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid token"


class TokenExpired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Token expired"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not allowed to access this route"


class InvalidOrExpiredToken(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid or expired token"


# ========== Resources ==========

class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class DuplicateEntry(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Duplicate entry"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later."


class EmailNotSent(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Email could not be sent"


# ========== Handlers ==========

def _error_body(message: str, **extra) -> dict:
    body = {"success": False, "error": message}
    body.update(extra)
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    extra = {}
    if isinstance(exc, RateLimited) and exc.headers and "Retry-After" in exc.headers:
        extra["retry_after"] = int(exc.headers["Retry-After"])
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), **extra),
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        # field_validator messages arrive as "Value error, <message>"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc), "message": message})

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(_error_body("Validation failed", errors=errors)),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("Duplicate field value. Please use another value."),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    if settings.is_production:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Server Error"),
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(str(exc) or "Server Error", type=type(exc).__name__),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on an application."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
