"""
Tests for the sliding window rate limiter and its middleware.
Covers rule matching, Redis failures and the 429 response.
"""

from collections import Counter
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from core.middleware.rate_limiting import (
    AI_PATHS,
    RateLimitMiddleware,
    RateLimitRule,
    RateLimitStrategy,
    SlidingWindowRateLimiter,
    default_rules,
)
from core.security import create_access_token


class TestRateLimitRules:
    """Test rate limit rule configuration."""

    def test_rule_without_filters_matches_everything(self):
        rule = RateLimitRule(
            name="general",
            strategy=RateLimitStrategy.USER_ID,
            max_requests=100,
            window_seconds=600,
        )

        assert rule.matches("/api/v1/jobs", "GET")
        assert rule.matches("/anything", "DELETE")

    @pytest.mark.parametrize(
        "path,method,expected",
        [
            ("/api/v1/applications/jobs/12/ats-score", "POST", True),
            ("/api/v1/applications/jobs/12/cover-letter", "POST", True),
            ("/api/v1/users/me/resume/generate", "POST", True),
            ("/api/v1/applications/jobs/12/apply", "POST", False),
            ("/api/v1/users/me/resume", "POST", False),
            ("/api/v1/applications/jobs/12/ats-score", "GET", False),
        ],
    )
    def test_ai_rule_paths(self, path, method, expected):
        rule = RateLimitRule(
            name="ai",
            strategy=RateLimitStrategy.USER_ID,
            max_requests=10,
            window_seconds=900,
            paths=AI_PATHS,
            methods=["POST"],
        )

        assert rule.matches(path, method) is expected

    def test_default_rules_follow_settings(self):
        settings = SimpleNamespace(
            rate_limit_general_requests=100,
            rate_limit_general_window=600,
            rate_limit_ai_requests=10,
            rate_limit_ai_window=900,
        )
        general, ai = default_rules(settings)

        assert (general.name, general.max_requests, general.window_seconds) == ("general", 100, 600)
        assert (ai.name, ai.max_requests, ai.window_seconds) == ("ai", 10, 900)
        assert ai.paths == AI_PATHS


class TestSlidingWindowAlgorithm:
    """Test sliding window rate limiting algorithm."""

    @pytest.fixture
    def redis_client(self):
        """Create mock Redis client."""
        client = AsyncMock()
        client.pipeline = Mock(return_value=client)
        # Pipeline commands are non-async
        client.zremrangebyscore = Mock(return_value=None)
        client.zcard = Mock(return_value=0)
        client.zadd = Mock(return_value=None)
        client.expire = Mock(return_value=None)
        # execute() is async
        client.execute = AsyncMock(return_value=[None, 0, None, None])
        client.zrange = AsyncMock(return_value=[])
        client.zrem = AsyncMock(return_value=None)
        return client

    @pytest.mark.asyncio
    async def test_first_request_allowed(self, redis_client):
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed(
            key="test:user:123",
            max_requests=10,
            window_seconds=60,
        )

        assert allowed is True
        assert metadata["limit"] == 10
        assert metadata["remaining"] == 9
        assert metadata["retry_after"] == 0

    @pytest.mark.asyncio
    async def test_last_request_within_limit(self, redis_client):
        redis_client.execute = AsyncMock(return_value=[None, 9, None, None])
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed("k", max_requests=10, window_seconds=60)

        assert allowed is True
        assert metadata["remaining"] == 0
        redis_client.zrem.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_over_limit_is_rejected_and_not_counted(self, redis_client):
        redis_client.execute = AsyncMock(return_value=[None, 10, None, None])
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed("k", max_requests=10, window_seconds=60)

        assert allowed is False
        assert metadata["remaining"] == 0
        assert metadata["retry_after"] == 60
        assert metadata["entry"] is None
        redis_client.zrem.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_removes_the_entry(self, redis_client):
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed("k", max_requests=10, window_seconds=60)
        await limiter.release("k", metadata["entry"])

        assert allowed is True
        redis_client.zrem.assert_awaited_once_with("k", metadata["entry"])

    @pytest.mark.asyncio
    async def test_release_survives_redis_errors(self, redis_client):
        redis_client.zrem = AsyncMock(side_effect=RedisError("oops"))
        limiter = SlidingWindowRateLimiter(redis_client)

        await limiter.release("k", "entry")

    @pytest.mark.asyncio
    async def test_retry_after_uses_oldest_entry(self, redis_client):
        import time

        redis_client.execute = AsyncMock(return_value=[None, 5, None, None])
        redis_client.zrange = AsyncMock(return_value=[("old", time.time() - 30)])
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed("k", max_requests=5, window_seconds=60)

        assert allowed is False
        assert 28 <= metadata["retry_after"] <= 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,label",
        [
            (RedisConnectionError("refused"), "redis_unavailable"),
            (RedisError("oops"), "redis_error"),
        ],
    )
    async def test_redis_failure_fails_open(self, redis_client, error, label):
        redis_client.execute = AsyncMock(side_effect=error)
        limiter = SlidingWindowRateLimiter(redis_client)

        allowed, metadata = await limiter.is_allowed("k", max_requests=10, window_seconds=60)

        assert allowed is True
        assert metadata["error"] == label
        assert metadata["remaining"] == 10


class FakeLimiter:
    """Allows up to ``budget`` (or the rule's own limit, if lower) entries per key."""

    def __init__(self, budget: int):
        self.budget = budget
        self.calls = []
        self.used = Counter()
        self.released = []

    async def is_allowed(self, key, max_requests, window_seconds, cost=1):
        self.calls.append(key)
        limit = min(self.budget, max_requests)
        self.used[key] += 1
        allowed = self.used[key] <= limit
        remaining = max(0, limit - self.used[key])
        if not allowed:
            self.used[key] -= 1
        return allowed, {
            "limit": limit,
            "remaining": remaining,
            "reset": 1700000000,
            "retry_after": 0 if allowed else 42,
            "entry": f"{key}#{self.used[key]}" if allowed else None,
        }

    async def release(self, key, entry):
        self.released.append(entry)
        self.used[key] -= 1


def build_app(limiter, rules=None) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, rules=rules, key_prefix="test")

    @app.get("/items")
    async def items():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


class TestRateLimitMiddleware:
    """Test the middleware end to end with a fake limiter."""

    def test_headers_on_allowed_request(self):
        client = TestClient(build_app(FakeLimiter(budget=2)))

        response = client.get("/items")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_over_limit_returns_429(self):
        client = TestClient(build_app(FakeLimiter(budget=1)))

        client.get("/items")
        response = client.get("/items")

        assert response.status_code == 429
        body = response.json()
        assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["error"]["retry_after"] == 42
        assert response.headers["Retry-After"] == "42"

    def test_health_is_exempt(self):
        limiter = FakeLimiter(budget=0)
        client = TestClient(build_app(limiter))

        assert client.get("/health").status_code == 200
        assert limiter.calls == []

    def test_key_uses_user_id_from_access_token(self):
        limiter = FakeLimiter(budget=5)
        client = TestClient(build_app(limiter))

        client.get("/items", headers={"Authorization": f"Bearer {create_access_token(7, 'employer')}"})
        client.get("/items", headers={"Authorization": "Bearer not-a-token"})

        assert limiter.calls[0] == "test:general:user:7"
        assert limiter.calls[1].startswith("test:general:ip:")

    def test_forwarded_ip_is_used_for_anonymous_callers(self):
        limiter = FakeLimiter(budget=5)
        client = TestClient(build_app(limiter))

        client.get("/items", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        assert limiter.calls == ["test:general:ip:203.0.113.9"]

    def test_rejected_request_does_not_use_other_rules(self):
        limiter = FakeLimiter(budget=10)
        rules = [
            RateLimitRule(name="general", strategy=RateLimitStrategy.IP_ADDRESS,
                          max_requests=10, window_seconds=600),
            RateLimitRule(name="ai", strategy=RateLimitStrategy.IP_ADDRESS,
                          max_requests=1, window_seconds=900, paths=[r"/items$"]),
        ]
        client = TestClient(build_app(limiter, rules=rules))
        headers = {"X-Forwarded-For": "198.51.100.4"}

        first = client.get("/items", headers=headers)
        second = client.get("/items", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 429
        assert limiter.released == ["test:general:ip:198.51.100.4#2"]
        assert limiter.used["test:general:ip:198.51.100.4"] == 1
        assert limiter.used["test:ai:ip:198.51.100.4"] == 1
