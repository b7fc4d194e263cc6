"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Redis-based sliding window rate limiting
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.rate_limiting import (
    RateLimitMiddleware,
    RateLimitRule,
    RateLimitStrategy,
    SlidingWindowRateLimiter,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Rate limiting
    "RateLimitMiddleware",
    "RateLimitRule",
    "RateLimitStrategy",
    "SlidingWindowRateLimiter",
]
