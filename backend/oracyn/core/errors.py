"""
API error types and the handlers that render them.

Every error the service raises on purpose derives from `ApiError` and is
rendered as `{"detail": <message>, "code": <CODE>}`. Anything else is an
internal error (500); details are only exposed outside production.
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .logging import get_logger

LOGGER = get_logger(__name__)


class ApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthenticationFailed(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class PayloadTooLarge(ApiError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "FILE_TOO_LARGE"


class UnsupportedMediaType(ApiError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = "INVALID_FILE_TYPE"


class UpstreamUnavailable(ApiError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "AI_SERVICE_UNAVAILABLE"


def register_exception_handlers(app: FastAPI, settings) -> None:
    """Install JSON renderers for `ApiError` and for uncaught exceptions."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        LOGGER.exception(f"Unhandled error on {request.method} {request.url.path}")
        content = {"detail": "Internal server error", "code": "INTERNAL_ERROR"}
        if not settings.is_production:
            content["error"] = str(exc)
            content["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
