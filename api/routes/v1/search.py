"""
Search endpoints for finding people and companies by name.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_user
from api.services import search as search_service
from database.models.users import User

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    summary="Search Users And Companies",
    description="Case-insensitive name search; at most 10 people and 10 companies.",
)
async def search(
    query: str = Query(..., min_length=1, max_length=100, description="Name to look for"),
    current_user: User = Depends(get_current_user),
):
    return await search_service.search_users_and_companies(query)
