"""
Error taxonomy and the FastAPI handlers that render it.

Every error the services raise on purpose derives from
``ArticleFeedError`` and carries its own HTTP status and a
machine-readable code.  The response body is always::

    {"error": {"code": "INVALID_CURSOR", "message": "...", "details": {}}}

Anything else escaping a route is logged with its traceback and rendered
as a generic 500; store failures are never retried here.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ArticleFeedError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(ArticleFeedError):
    status_code = 422
    error_code = "VALIDATION_ERROR"


class InvalidCursor(ArticleFeedError):
    """The cursor is undecodable, tampered with, or minted for another listing."""

    status_code = 422
    error_code = "INVALID_CURSOR"

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid pagination cursor", details={"reason": reason})


class Unauthenticated(ArticleFeedError):
    status_code = 401
    error_code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class Forbidden(ArticleFeedError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFound(ArticleFeedError):
    """
    A looked-up resource does not exist.

    ``NotFound("Article", slug)`` reads as "Article 'my-slug' not found".
    """

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, key: Optional[Any] = None) -> None:
        message = f"{resource} not found"
        if key is not None:
            message = f"{resource} '{key}' not found"
        super().__init__(message)


class Conflict(ArticleFeedError):
    status_code = 409
    error_code = "CONFLICT"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def setup_exception_handlers(app: FastAPI) -> None:
    """Register the JSON error renderers on *app*."""

    @app.exception_handler(ArticleFeedError)
    async def article_feed_error_handler(request: Request, exc: ArticleFeedError) -> JSONResponse:
        logger.warning(
            "%s %s -> %s %s: %s",
            request.method, request.url.path, exc.status_code, exc.error_code, exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s -> 422 request validation failed", request.method, request.url.path)
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": ValidationError.error_code,
                    "message": "Request validation failed",
                    "details": {"errors": jsonable_encoder(exc.errors())},
                }
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unexpected %s on %s %s",
            type(exc).__name__, request.method, request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ArticleFeedError.error_code,
                    "message": "An unexpected error occurred",
                    "details": {},
                }
            },
        )
