"""FastAPI dependencies for dependency injection."""

from typing import Callable, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import PaginationParams
from core.errors import AuthenticationError, UnauthorizedError
from core.permissions import has_company_permission, has_super_admin_permission
from core.security import decode_access_token
from database.engine import get_db
from database.models.users import (
    CompanyAdminPermission,
    SuperAdminPermission,
    User,
    UserRole,
)


security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from the bearer access token.

    Raises:
        AuthenticationError: missing, invalid or expired token, or the user
            no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError) as e:
        raise AuthenticationError("Invalid token") from e

    user = await db.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise AuthenticationError("User not found or deleted")

    request.state.user_id = user.id
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: the caller must hold one of ``roles``."""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            allowed = " or ".join(role.value.replace("_", " ") for role in roles)
            raise UnauthorizedError(f"Unauthorized: Only a {allowed} can access this resource")
        return current_user

    return dependency


def require_company_permission(permission: CompanyAdminPermission) -> Callable:
    """
    Dependency factory for routes with a ``company_id`` path parameter: the
    caller must be the company's active admin holding ``permission``.
    """

    async def dependency(
        company_id: int,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if not await has_company_permission(db, current_user.id, permission.value, company_id):
            raise UnauthorizedError(f"Unauthorized: Missing company permission {permission.value}")
        return current_user

    return dependency


def require_super_admin_permission(permission: SuperAdminPermission) -> Callable:
    async def dependency(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if not await has_super_admin_permission(db, current_user.id, permission.value):
            raise UnauthorizedError(
                f"Unauthorized: Missing super admin permission {permission.value}"
            )
        return current_user

    return dependency


def get_pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)
