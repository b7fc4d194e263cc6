"""
Redis-based rate limiting middleware.
Implements distributed rate limiting with a sliding window over sorted sets.
"""

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.errors import AuthenticationError
from core.security import decode_access_token

logger = logging.getLogger(__name__)


class RateLimitStrategy(str, Enum):
    """Who a limit is counted against."""
    IP_ADDRESS = "ip"
    USER_ID = "user"


@dataclass
class RateLimitRule:
    """Rate limit rule configuration."""
    name: str
    strategy: RateLimitStrategy
    max_requests: int
    window_seconds: int
    paths: Optional[List[str]] = None  # regexes matched against the request path
    methods: Optional[List[str]] = None

    def matches(self, path: str, method: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        if self.paths and not any(re.search(pattern, path) for pattern in self.paths):
            return False
        return True


# Endpoints that call the language model
AI_PATHS = [
    r"/applications/jobs/[^/]+/ats-score$",
    r"/applications/jobs/[^/]+/cover-letter$",
    r"/users/me/resume/generate$",
]


def default_rules(settings) -> List[RateLimitRule]:
    return [
        RateLimitRule(
            name="general",
            strategy=RateLimitStrategy.USER_ID,
            max_requests=settings.rate_limit_general_requests,
            window_seconds=settings.rate_limit_general_window,
        ),
        RateLimitRule(
            name="ai",
            strategy=RateLimitStrategy.USER_ID,
            max_requests=settings.rate_limit_ai_requests,
            window_seconds=settings.rate_limit_ai_window,
            paths=AI_PATHS,
            methods=["POST"],
        ),
    ]


class SlidingWindowRateLimiter:
    """
    Redis-based sliding window rate limiter.

    Each key is a sorted set of request timestamps; entries older than the
    window are trimmed before counting.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int,
        cost: int = 1,
    ) -> tuple[bool, Dict[str, Any]]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Unique identifier for the rate limit
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds
            cost: Cost of this request

        Returns:
            Tuple of (is_allowed, metadata) where metadata carries
            limit, remaining, reset and retry_after
        """
        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            request_id = f"{now}:{hashlib.md5(str(now).encode()).hexdigest()[:8]}"
            pipe.zadd(key, {request_id: now})
            pipe.expire(key, window_seconds + 60)
            results = await pipe.execute()

            # count before this request was added
            current_count = results[1]

            remaining = max(0, max_requests - current_count - cost)
            reset_time = int(now + window_seconds)
            allowed = (current_count + cost) <= max_requests

            if not allowed:
                oldest_scores = await self.redis.zrange(key, 0, 0, withscores=True)
                if oldest_scores:
                    retry_after = int(oldest_scores[0][1] + window_seconds - now)
                else:
                    retry_after = window_seconds
                # rejected requests do not count
                await self.redis.zrem(key, request_id)
                request_id = None
            else:
                retry_after = 0

            return allowed, {
                'limit': max_requests,
                'remaining': remaining,
                'reset': reset_time,
                'retry_after': max(0, retry_after),
                'current': current_count,
                'entry': request_id,
            }

        except RedisConnectionError as e:
            logger.error(f"Redis connection error in rate limiter: {e}")
            return True, self._open_metadata(max_requests, now, window_seconds, 'redis_unavailable')

        except RedisError as e:
            logger.error(f"Redis error in rate limiter: {e}")
            return True, self._open_metadata(max_requests, now, window_seconds, 'redis_error')

    async def release(self, key: str, entry: str) -> None:
        """Remove an entry recorded by ``is_allowed``."""
        try:
            await self.redis.zrem(key, entry)
        except RedisError as e:
            logger.error(f"Redis error releasing rate limit entry: {e}")

    @staticmethod
    def _open_metadata(max_requests: int, now: float, window_seconds: int, error: str) -> Dict[str, Any]:
        return {
            'limit': max_requests,
            'remaining': max_requests,
            'reset': int(now + window_seconds),
            'retry_after': 0,
            'error': error,
        }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware.

    Every matching rule is checked and the most restrictive one is reported
    in the ``X-RateLimit-*`` headers. Requests are allowed through when redis
    is unreachable.
    """

    def __init__(
        self,
        app: ASGIApp,
        redis_url: Optional[str] = None,
        rules: Optional[List[RateLimitRule]] = None,
        key_prefix: str = "ratelimit",
        enable_headers: bool = True,
        limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        """
        Initialize rate limiting middleware.

        Args:
            app: The ASGI application
            redis_url: Redis connection URL
            rules: Rate limit rules to apply (general + AI limits by default)
            key_prefix: Prefix for Redis keys
            enable_headers: Whether to add rate limit headers to responses
            limiter: Pre-built limiter, skips connecting to ``redis_url``
        """
        super().__init__(app)
        from core.config import settings

        self.redis_client: Optional[Redis] = None
        self.redis_url = redis_url or str(settings.redis_url)
        self.limiter = limiter
        self.rules = rules or default_rules(settings)
        self.key_prefix = key_prefix
        self.enable_headers = enable_headers
        self._initialized = limiter is not None

    async def _initialize(self):
        """Initialize Redis connection lazily."""
        if self._initialized:
            return
        self._initialized = True
        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            self.limiter = SlidingWindowRateLimiter(self.redis_client)
            logger.info("Rate limiter initialized successfully")
        except (RedisError, ValueError) as e:
            logger.error(f"Failed to initialize rate limiter: {e}")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        await self._initialize()

        if not self.limiter:
            return await call_next(request)

        if request.url.path in ['/health', '/healthz', '/ready']:
            return await call_next(request)

        result = await self._check_rate_limits(request)

        if not result['allowed']:
            response = JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'error': {
                        'code': 'RATE_LIMIT_EXCEEDED',
                        'message': 'Too many requests. Please try again later.',
                        'retry_after': result['retry_after'],
                    }
                },
            )
            if self.enable_headers:
                self._add_rate_limit_headers(response, result)
            return response

        response = await call_next(request)
        if self.enable_headers and result['limit']:
            self._add_rate_limit_headers(response, result)
        return response

    async def _check_rate_limits(self, request: Request) -> Dict[str, Any]:
        results = {
            'allowed': True,
            'limit': 0,
            'remaining': 0,
            'reset': 0,
            'retry_after': 0,
        }
        recorded = []

        for rule in self.rules:
            if not rule.matches(request.url.path, request.method):
                continue

            key = self._generate_key(request, rule)
            allowed, metadata = await self.limiter.is_allowed(
                key=key,
                max_requests=rule.max_requests,
                window_seconds=rule.window_seconds,
            )

            if not allowed:
                results['allowed'] = False
                results['retry_after'] = max(results['retry_after'], metadata['retry_after'])
            elif metadata.get('entry'):
                recorded.append((key, metadata['entry']))

            if metadata['remaining'] < results['remaining'] or results['limit'] == 0:
                results['limit'] = metadata['limit']
                results['remaining'] = metadata['remaining']
                results['reset'] = metadata['reset']

        # a rejected request does not use up the rules that allowed it
        if not results['allowed']:
            for key, entry in recorded:
                await self.limiter.release(key, entry)

        return results

    def _generate_key(self, request: Request, rule: RateLimitRule) -> str:
        parts = [self.key_prefix, rule.name]

        if rule.strategy == RateLimitStrategy.USER_ID:
            user_id = self._get_user_id(request)
            parts.append(f"user:{user_id}" if user_id else f"ip:{self._get_client_ip(request)}")
        else:
            parts.append(f"ip:{self._get_client_ip(request)}")

        return ":".join(parts)

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get('x-forwarded-for')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.headers.get('x-real-ip')
        if real_ip:
            return real_ip

        return request.client.host if request.client else 'unknown'

    def _get_user_id(self, request: Request) -> Optional[str]:
        """User id from a valid bearer access token, None for anonymous callers."""
        auth_header = request.headers.get('authorization', '')
        scheme, _, token = auth_header.partition(' ')
        if scheme.lower() != 'bearer' or not token:
            return None
        try:
            return str(decode_access_token(token)['sub'])
        except AuthenticationError:
            return None

    def _add_rate_limit_headers(self, response: Response, result: Dict[str, Any]):
        response.headers['X-RateLimit-Limit'] = str(result['limit'])
        response.headers['X-RateLimit-Remaining'] = str(result['remaining'])
        response.headers['X-RateLimit-Reset'] = str(result['reset'])

        if not result['allowed']:
            response.headers['Retry-After'] = str(result['retry_after'])

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Rate limiter closed")
