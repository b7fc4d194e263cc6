"""Shared fixtures for tests."""

import os

# Settings are read at import time, so the environment is set before any
# application module is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("SERVER_SECRET", "0123456789abcdef0123456789abcdef")
os.environ.setdefault("IDENTITY_ALGORITHM", "HS256")
os.environ.setdefault("IDENTITY_SHARED_SECRET", "test-identity-secret-min-32-chars-long")
os.environ.setdefault("SUPER_ADMIN_EMAILS", '["root@example.com"]')
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET", "test-bucket")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")

from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import database.models  # noqa: F401  registers every table
from database.engine import AsyncSessionLocal, Base


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database bound to the application session factory."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    AsyncSessionLocal.configure(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def pushes():
    """Record live pushes instead of sending them."""
    sent = []

    async def _record(user_id, event, payload):
        sent.append((user_id, event, payload))
        return 1

    with patch("core.realtime.manager.push", side_effect=_record):
        yield sent
