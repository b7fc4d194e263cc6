"""
Tests for cached admin permission lookups.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from core.permissions import (
    COMPANY_ADMIN_KEY,
    SUPER_ADMIN_KEY,
    get_company_admin_grant,
    get_super_admin_grant,
    grant_allows,
    invalidate_admin_permissions,
)
from database.models.users import AdminStatus, CompanyAdminPermission


ACTIVE_GRANT = {
    "status": "active",
    "permissions": ["manage_company_jobs", "view_company_reports"],
    "company_id": 7,
}


class TestGrantAllows:
    @pytest.mark.parametrize(
        "grant,permission,company_id,expected",
        [
            (ACTIVE_GRANT, "manage_company_jobs", 7, True),
            (ACTIVE_GRANT, CompanyAdminPermission.MANAGE_COMPANY_JOBS, 7, True),
            (ACTIVE_GRANT, "manage_company_jobs", None, True),
            (ACTIVE_GRANT, None, 7, True),
            (ACTIVE_GRANT, "fire_employers", 7, False),
            (ACTIVE_GRANT, "manage_company_jobs", 8, False),
            ({**ACTIVE_GRANT, "status": "inactive"}, "manage_company_jobs", 7, False),
            (None, None, None, False),
            ({}, None, None, False),
        ],
    )
    def test_grant_allows(self, grant, permission, company_id, expected):
        assert grant_allows(grant, permission, company_id) is expected


class TestGrantLookups:
    """Test the cache-then-database lookup order."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self):
        session = AsyncMock()
        with patch("core.permissions.redis_cache") as cache:
            cache.get = AsyncMock(return_value=ACTIVE_GRANT)
            grant = await get_company_admin_grant(session, 3)

        assert grant == ACTIVE_GRANT
        cache.get.assert_awaited_once_with(COMPANY_ADMIN_KEY.format(user_id=3))
        session.scalar.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_miss_loads_and_stores(self):
        row = SimpleNamespace(
            status=AdminStatus.ACTIVE,
            permissions=["manage_company_jobs"],
            company_id=11,
        )
        session = AsyncMock()
        session.scalar = AsyncMock(return_value=row)

        with patch("core.permissions.redis_cache") as cache:
            cache.get = AsyncMock(return_value=None)
            cache.set = AsyncMock(return_value=True)
            grant = await get_company_admin_grant(session, 3)

        assert grant == {
            "status": "active",
            "permissions": ["manage_company_jobs"],
            "company_id": 11,
        }
        cache.set.assert_awaited_once()
        assert cache.set.await_args.kwargs["ttl"] == 3600

    @pytest.mark.asyncio
    async def test_missing_admin_row(self):
        session = AsyncMock()
        session.scalar = AsyncMock(return_value=None)

        with patch("core.permissions.redis_cache") as cache:
            cache.get = AsyncMock(return_value=None)
            cache.set = AsyncMock()
            grant = await get_super_admin_grant(session, 3)

        assert grant is None
        cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unavailable_cache_falls_back_to_database(self):
        """Test the real cache, never initialized, behaves as a miss."""
        row = SimpleNamespace(status=AdminStatus.ACTIVE, permissions=[], company_id=None)
        session = AsyncMock()
        session.scalar = AsyncMock(return_value=row)

        grant = await get_company_admin_grant(session, 5)

        assert grant["status"] == "active"
        session.scalar.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_drops_both_keys(self):
        with patch("core.permissions.redis_cache") as cache:
            cache.delete = AsyncMock(return_value=True)
            await invalidate_admin_permissions(9)

        deleted = [call.args[0] for call in cache.delete.await_args_list]
        assert deleted == [
            COMPANY_ADMIN_KEY.format(user_id=9),
            SUPER_ADMIN_KEY.format(user_id=9),
        ]
