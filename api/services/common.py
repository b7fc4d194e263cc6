"""
Helpers shared by the service functions: loading the caller, pagination and
the summary shapes embedded in several responses.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, UnauthorizedError
from core.utils.datetime import isoformat
from database.models.users import User, UserRole


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


def paginated(items: List[Any], total: int, page: int, page_size: int) -> Dict[str, Any]:
    """Same shape as ``PaginatedResponse``."""
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


async def load_user(session: AsyncSession, user_id: int) -> User:
    """Load a non-deleted user or raise NotFoundError."""
    user = await session.scalar(select(User).where(User.id == user_id))
    if not user:
        raise NotFoundError("User not found")
    return user


async def load_user_with_role(
    session: AsyncSession, user_id: int, *roles: UserRole, action: str = "perform this action"
) -> User:
    """Load the caller and check their role and role profile."""
    user = await load_user(session, user_id)
    if user.role not in roles:
        allowed = " or ".join(role.value.replace("_", " ") for role in roles)
        raise UnauthorizedError(f"Unauthorized: Only a {allowed} can {action}")
    if user.role_profile is None or user.role_profile.is_deleted:
        raise NotFoundError("Role profile not found")
    return user


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    profile = user.profile
    return {
        "id": user.id,
        "role": user.role.value,
        "full_name": profile.full_name if profile else None,
        "profile_picture": profile.profile_picture if profile else None,
    }


def timestamps(row) -> Dict[str, Optional[str]]:
    return {
        "created_at": isoformat(row.created_at),
        "updated_at": isoformat(row.updated_at),
    }
