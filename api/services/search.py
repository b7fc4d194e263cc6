"""Search service functions."""

from typing import Any, Dict
import logging

from sqlalchemy import select

from api.services.common import user_summary
from core.errors import ValidationError
from database.engine import AsyncSessionLocal
from database.models.companies import Company
from database.models.users import User, UserProfile

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 100


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def search_users_and_companies(query: str, limit: int = 10) -> Dict[str, Any]:
    """
    Find people by full name and companies by name.

    Matching is a case-insensitive substring match. Each list holds at most
    ``limit`` results; deleted accounts and companies never appear.
    """
    query = (query or "").strip()
    if not query:
        raise ValidationError("Search query is required")
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(f"Search query cannot exceed {MAX_QUERY_LENGTH} characters")

    search_pattern = _like_pattern(query)
    async with AsyncSessionLocal() as session:
        users = await session.execute(
            select(User)
            .join(UserProfile, UserProfile.user_id == User.id)
            .where(UserProfile.full_name.ilike(search_pattern, escape="\\"))
            .order_by(UserProfile.full_name, User.id)
            .limit(limit)
        )
        companies = await session.execute(
            select(Company)
            .where(Company.name.ilike(search_pattern, escape="\\"))
            .order_by(Company.name, Company.id)
            .limit(limit)
        )

        return {
            "query": query,
            "users": [user_summary(user) for user in users.scalars().all()],
            "companies": [
                {
                    "id": company.id,
                    "name": company.name,
                    "logo": company.logo,
                    "industry": company.industry,
                }
                for company in companies.scalars().all()
            ],
        }
