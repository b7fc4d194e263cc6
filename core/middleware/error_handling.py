"""
Error handling: domain exceptions to JSON responses, and an outermost ASGI
safety net that never lets a stack trace reach the client.

Every error response has the shape
``{"error": {"code", "message", "path", "method"[, "details", "request_id"]}}``.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.errors import AppError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged or returned
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'bearer\s+[A-Za-z0-9\-_.=]+', re.IGNORECASE),
    re.compile(r'\beyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+'),  # JWT
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (only in debug)
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def error_body(
    code: str,
    message: str,
    path: str,
    method: str,
    details: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    body = {
        "error": {
            "code": code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    if request_id:
        body["error"]["request_id"] = request_id
    return body


def app_error_response(exc: AppError, path: str, method: str) -> JSONResponse:
    """Render a domain error, logging server-side failures with their trace."""
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {method} {path} - {sanitize_error_message(exc.message)}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
    else:
        logger.info(f"{type(exc).__name__}: {method} {path} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, sanitize_error_message(exc.message), path, method),
    )


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        for error in exc.errors()
    ]


class ErrorHandlingMiddleware:
    """
    Outermost error handling middleware.

    Catches anything the route-level handlers did not turn into a response:
    - domain errors keep their status and code
    - database and cache failures map to 409/503/500
    - everything else is a generic 500 whose details only reach the logs
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = await self._handle_exception(exc, scope)
            await response(scope, receive, send)

    async def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        """
        Map an exception to a JSON error response.

        Args:
            exc: The exception to handle
            scope: ASGI scope for context
        """
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        if isinstance(exc, AppError):
            return app_error_response(exc, request_path, request_method)

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error_code = "INTERNAL_SERVER_ERROR"
        message = "An unexpected error occurred"
        details = None

        if isinstance(exc, StarletteHTTPException):
            status_code = exc.status_code
            error_code = "HTTP_EXCEPTION"
            message = sanitize_error_message(exc.detail)
            logger.warning(
                f"HTTP exception: {request_method} {request_path} - "
                f"Status: {status_code}, Message: {message}"
            )

        elif isinstance(exc, RequestValidationError):
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
            error_code = "VALIDATION_ERROR"
            message = "Request validation failed"
            details = _format_validation_errors(exc)
            logger.warning(f"Validation error: {request_method} {request_path}")

        elif isinstance(exc, IntegrityError):
            status_code = status.HTTP_409_CONFLICT
            error_code = "CONFLICT"
            message = "Database integrity constraint violated"
            logger.warning(f"Database integrity error: {request_method} {request_path}")

        elif isinstance(exc, OperationalError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "DATABASE_ERROR"
            message = "Database service temporarily unavailable"
            logger.error(
                f"Database operational error: {request_method} {request_path}",
                exc_info=True,
            )

        elif isinstance(exc, SQLAlchemyError):
            error_code = "DATABASE_ERROR"
            message = "A database error occurred"
            if self.debug:
                details = get_safe_error_details(exc, include_details=True)
            logger.error(f"SQLAlchemy error: {request_method} {request_path}", exc_info=True)

        elif isinstance(exc, RedisConnectionError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "CACHE_ERROR"
            message = "Cache service temporarily unavailable"
            logger.error(f"Redis connection error: {request_method} {request_path}", exc_info=True)

        elif isinstance(exc, RedisError):
            error_code = "CACHE_ERROR"
            message = "A cache error occurred"
            logger.error(f"Redis error: {request_method} {request_path}", exc_info=True)

        elif isinstance(exc, TimeoutError):
            status_code = status.HTTP_504_GATEWAY_TIMEOUT
            error_code = "TIMEOUT"
            message = "The request timed out"
            logger.error(f"Timeout error: {request_method} {request_path}")

        else:
            if self.debug:
                details = get_safe_error_details(exc, include_details=True)
            logger.error(
                f"Unhandled exception: {request_method} {request_path} - "
                f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
                exc_info=True,
            )

        request_id = None
        for name, value in scope.get("headers", []):
            if name == b"x-request-id":
                request_id = value.decode()
                break

        return JSONResponse(
            status_code=status_code,
            content=error_body(
                error_code, message, request_path, request_method, details, request_id
            ),
        )


def setup_error_handlers(app):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Handle domain errors raised by services and dependencies."""
        return app_error_response(exc, str(request.url.path), request.method)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        """Concurrent duplicate inserts lose on a UNIQUE constraint."""
        logger.warning(f"Integrity error: {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body(
                "CONFLICT",
                "Conflicting change, please retry",
                str(request.url.path),
                request.method,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                "HTTP_EXCEPTION",
                sanitize_error_message(exc.detail),
                str(request.url.path),
                request.method,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                str(request.url.path),
                request.method,
                _format_validation_errors(exc),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(
            f"Unhandled exception: {request.method} {request.url.path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "INTERNAL_SERVER_ERROR",
                "An unexpected error occurred",
                str(request.url.path),
                request.method,
            ),
        )
