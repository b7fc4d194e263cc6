"""
Structured logging middleware with sensitive data masking.

Request and response events are logged as JSON. Credentials, identity tokens,
e-mail addresses, phone numbers and message bodies never reach the logs.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Any, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


# Field names whose values are always redacted
SENSITIVE_FIELD_PATTERNS = [
    re.compile(r'password', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'api[_-]?key', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'authorization', re.IGNORECASE),
    re.compile(r'bearer', re.IGNORECASE),
    re.compile(r'cookie', re.IGNORECASE),
    re.compile(r'session', re.IGNORECASE),
    re.compile(r'private[_-]?key', re.IGNORECASE),
    # chat plaintext and key material
    re.compile(r'^(message|content|plaintext|ciphertext)$', re.IGNORECASE),
    re.compile(r'encrypted[_-]?key', re.IGNORECASE),
]

# PII patterns replaced inside free-text values
PII_PATTERNS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\+?[1-9]\d{7,14}\b'), '[PHONE]'),
    (re.compile(r'\b\d{3}[-.]\d{3}[-.]\d{4}\b'), '[PHONE]'),
]


def is_sensitive_field(field_name: str) -> bool:
    """
    Check if a field name indicates sensitive data.

    Args:
        field_name: Name of the field to check
    """
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_pii(text: str) -> str:
    for pattern, replacement in PII_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Recursively mask sensitive data in dictionaries and lists.

    Args:
        data: Data structure to mask
        depth: Current recursion depth
        max_depth: Maximum recursion depth

    Returns:
        Data structure with sensitive values masked
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]"
            if is_sensitive_field(str(key))
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }

    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]

    if isinstance(data, str):
        return mask_pii(data)

    return data


def mask_headers(headers: dict) -> dict:
    """
    Mask sensitive headers while preserving useful debugging information.

    Args:
        headers: Dictionary of HTTP headers
    """
    masked = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if key_lower == 'authorization' and isinstance(value, str):
            # Show the scheme, never the credential
            scheme = value.split(' ', 1)[0] if ' ' in value else None
            masked[key] = f"{scheme} [REDACTED]" if scheme else "[REDACTED]"
        elif is_sensitive_field(key_lower):
            masked[key] = "[REDACTED]"
        else:
            masked[key] = value
    return masked


def should_log_request(path: str) -> bool:
    """Skip health checks to reduce noise."""
    skip_paths = ['/health', '/healthz', '/ready']
    return not any(path.startswith(skip) for skip in skip_paths)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request, handling proxies.

    The last IPv4 octet is masked.
    """
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        ip = forwarded_for.split(',')[0].strip()
    else:
        ip = request.client.host if request.client else 'unknown'

    parts = ip.split('.')
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.{parts[2]}.xxx"
    return 'unknown'


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs ``request_started`` / ``request_completed`` events as JSON.

    A request id is taken from ``x-request-id`` (or generated), stored on
    ``request.state`` and echoed back in the response headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        max_body_size: int = 1024,
    ):
        """
        Initialize logging middleware.

        Args:
            app: The ASGI application
            log_request_body: Whether to log request bodies (masked)
            max_body_size: Maximum body size to log (bytes)
        """
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id', str(uuid.uuid4()))
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        start_time = time.time()

        request_log = {
            'event': 'request_started',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'client_ip': get_client_ip(request),
            'user_agent': request.headers.get('user-agent', 'unknown'),
            'headers': mask_headers(dict(request.headers)),
        }

        if self.log_request_body and request.method in ['POST', 'PUT', 'PATCH']:
            body = await self._get_request_body(request)
            if body:
                request_log['body'] = mask_sensitive_data(body)

        logger.info(json.dumps(request_log), extra={'request_id': request_id})

        response = None
        error_details = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_details = {'type': type(exc).__name__}
            raise
        finally:
            duration = time.time() - start_time
            response_log = {
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'duration_ms': round(duration * 1000, 2),
                'status_code': response.status_code if response else 500,
            }
            user_id = getattr(request.state, 'user_id', None)
            if user_id is not None:
                response_log['user_id'] = user_id
            if error_details:
                response_log['error'] = error_details

            extra = {'request_id': request_id}
            if response is None or response.status_code >= 500:
                logger.error(json.dumps(response_log), extra=extra)
            elif response.status_code >= 400:
                logger.warning(json.dumps(response_log), extra=extra)
            else:
                logger.info(json.dumps(response_log), extra=extra)

            if response:
                response.headers['x-request-id'] = request_id

        return response

    async def _get_request_body(self, request: Request) -> Any:
        """Read a JSON body for logging; other content types are only named."""
        content_type = request.headers.get('content-type', '')
        if 'application/json' not in content_type:
            return {'_content_type': content_type}
        try:
            body_bytes = await request.body()
            if len(body_bytes) > self.max_body_size:
                return {'_truncated': True, '_size': len(body_bytes)}
            return json.loads(body_bytes.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Could not parse request body: {e}")
            return None


class StructuredFormatter(logging.Formatter):
    """Formats log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'user_id'):
            log_data['user_id'] = record.user_id

        if record.exc_info and record.exc_info[0] is not None:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to format logs as JSON
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level.upper()))

    if json_logs:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
