"""Error types and the handlers that turn them into failure envelopes."""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error carrying an HTTP status, a message and optional details."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, errors: list[Any] | None = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class InvalidArgument(ApiError):
    """Malformed or missing identifier or required field."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class Unauthorized(ApiError):
    """Missing, invalid or expired credential."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized request"


class Forbidden(ApiError):
    """Actor is not the owner of the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ApiError):
    """Duplicate relation or unique-field collision."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class StorageError(ApiError):
    """Underlying store operation failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage operation failed"


def error_response(
    status_code: int, message: str, errors: list[Any] | None = None
) -> JSONResponse:
    """Build the failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "success": False,
            "errors": jsonable_encoder(errors or []),
        },
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.errors)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", errors)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    ip_address = request.client.host if request.client else "unknown"
    logger.warning(f"Rate limit exceeded on {request.url.path} from ip={ip_address}")
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}"
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Storage failure on {request.url.path}", exc_info=exc)
    return error_response(StorageError.status_code, StorageError.default_message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}", exc_info=exc)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Route every error raised below the handler boundary to an envelope."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
