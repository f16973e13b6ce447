"""
Error taxonomy for the forum API.

Every failure a route can produce is a ``ForumError`` subclass carrying its
HTTP status. ``register_error_handlers`` turns them (plus FastAPI's own
validation and HTTP errors) into the ``{success, data, message, error}``
envelope, so nothing escapes a request as a bare traceback.
"""
import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from forum_api.config import is_production

logger = logging.getLogger(__name__)


class ForumError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, error: Any = None):
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)


class ValidationError(ForumError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(ForumError):
    # duplicates are reported as plain 400s to clients
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class AuthError(ForumError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class ForbiddenError(ForumError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class NotFoundError(ForumError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class UnhandledError(ForumError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"


class CounterSyncError(UnhandledError):
    """A counter step failed after the primary write had already committed."""

    def __init__(self, event: str, applied: List[str], pending: List[str], cause: Exception):
        self.event = event
        self.applied = applied
        self.pending = pending
        self.cause = cause
        super().__init__("Server error", error=f"{event}: counter update failed at {pending[0]}: {cause}")


def envelope(
    success: bool,
    data: Any = None,
    message: Optional[str] = None,
    error: Any = None,
) -> dict:
    return {"success": success, "data": data, "message": message, "error": error}


def error_response(status_code: int, message: str, error: Any = None) -> JSONResponse:
    if status_code >= 500 and is_production():
        error = None
    return JSONResponse(status_code=status_code, content=envelope(False, message=message, error=error))


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.error or exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
        resp = error_response(exc.status_code, exc.message, exc.error)
        if headers:
            resp.headers.update(headers)
        return resp

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg")}
            for e in exc.errors()
        ]
        return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", details)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        resp = error_response(exc.status_code, message)
        if exc.headers:
            resp.headers.update(exc.headers)
        return resp

    @app.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", str(exc))
