"""Fixtures for endpoint tests."""

import httpx
import pytest_asyncio

from api.main import app


@pytest_asyncio.fixture
async def client(db):
    """Async client on the test loop; the lifespan is not run."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
