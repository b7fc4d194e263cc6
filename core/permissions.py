"""
Admin permission lookups backed by the redis cache.

Grants are cached for ``PERMISSION_CACHE_TTL`` seconds (1 hour by default).
The cache is advisory: a stale entry can grant access for up to one TTL after
a change made outside this module, so every change made here invalidates the
entry immediately.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import redis_cache
from core.config import settings
from database.models.users import AdminStatus, CompanyAdmin, SuperAdmin

logger = logging.getLogger(__name__)

COMPANY_ADMIN_KEY = "perm:company_admin:{user_id}"
SUPER_ADMIN_KEY = "perm:super_admin:{user_id}"


def _grant(row, **extra) -> Dict[str, Any]:
    return {
        "status": row.status.value,
        "permissions": list(row.permissions or []),
        **extra,
    }


async def get_company_admin_grant(
    session: AsyncSession, user_id: int
) -> Optional[Dict[str, Any]]:
    """
    Get a company admin's status, company and permissions.

    Returns:
        {"status", "permissions", "company_id"} or None if not a company admin
    """
    key = COMPANY_ADMIN_KEY.format(user_id=user_id)
    cached = await redis_cache.get(key)
    if cached is not None:
        return cached

    row = await session.scalar(
        select(CompanyAdmin).where(CompanyAdmin.user_id == user_id)
    )
    if not row:
        return None

    grant = _grant(row, company_id=row.company_id)
    await redis_cache.set(key, grant, ttl=settings.permission_cache_ttl)
    return grant


async def get_super_admin_grant(
    session: AsyncSession, user_id: int
) -> Optional[Dict[str, Any]]:
    key = SUPER_ADMIN_KEY.format(user_id=user_id)
    cached = await redis_cache.get(key)
    if cached is not None:
        return cached

    row = await session.scalar(select(SuperAdmin).where(SuperAdmin.user_id == user_id))
    if not row:
        return None

    grant = _grant(row)
    await redis_cache.set(key, grant, ttl=settings.permission_cache_ttl)
    return grant


def grant_allows(
    grant: Optional[Dict[str, Any]],
    permission: Optional[str],
    company_id: Optional[int] = None,
) -> bool:
    """Check an active grant holds ``permission`` (and covers ``company_id`` if given).

    A ``permission`` of None only checks the grant is active.
    """
    if not grant or grant.get("status") != AdminStatus.ACTIVE.value:
        return False
    if permission is not None and permission not in grant.get("permissions", []):
        return False
    if company_id is not None and grant.get("company_id") != company_id:
        return False
    return True


async def has_company_permission(
    session: AsyncSession,
    user_id: int,
    permission: Optional[str],
    company_id: Optional[int] = None,
) -> bool:
    grant = await get_company_admin_grant(session, user_id)
    return grant_allows(grant, permission, company_id)


async def has_super_admin_permission(
    session: AsyncSession, user_id: int, permission: str
) -> bool:
    grant = await get_super_admin_grant(session, user_id)
    return grant_allows(grant, permission)


async def invalidate_admin_permissions(user_id: int) -> None:
    """Drop cached grants for a user after their admin record changed."""
    await redis_cache.delete(COMPANY_ADMIN_KEY.format(user_id=user_id))
    await redis_cache.delete(SUPER_ADMIN_KEY.format(user_id=user_id))
