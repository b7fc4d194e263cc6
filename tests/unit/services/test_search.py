"""
Tests for searching people and companies by name.
"""

import pytest

from api.services import admin as admin_service
from api.services import search as search_service
from core.errors import ValidationError
from database.models.users import UserRole
from tests.factories import create_company, create_user

pytestmark = pytest.mark.usefixtures("db")


class TestSearch:
    @pytest.mark.asyncio
    async def test_matches_names_case_insensitively(self):
        ada = await create_user(full_name="Ada Lovelace")
        await create_user(full_name="Grace Hopper")
        company = await create_company("Lovelace Labs")

        result = await search_service.search_users_and_companies("LOVELACE")

        assert [user["id"] for user in result["users"]] == [ada.id]
        assert [c["id"] for c in result["companies"]] == [company.id]

    @pytest.mark.asyncio
    async def test_at_most_ten_of_each(self):
        for n in range(12):
            await create_user(full_name=f"Sam {n:02d}")
            await create_company(f"Sam Co {n:02d}")

        result = await search_service.search_users_and_companies("sam")

        assert len(result["users"]) == 10
        assert len(result["companies"]) == 10
        assert result["users"][0]["full_name"] == "Sam 00"

    @pytest.mark.asyncio
    async def test_deleted_records_are_hidden(self):
        root = await create_user(UserRole.SUPER_ADMIN)
        gone = await create_user(full_name="Vanishing Act")
        company = await create_company("Vanishing Corp")
        await admin_service.delete_user(root.id, gone.id)
        await admin_service.delete_company(root.id, company.id)

        result = await search_service.search_users_and_companies("vanishing")

        assert result["users"] == []
        assert result["companies"] == []

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self):
        await create_user(full_name="Percy")

        result = await search_service.search_users_and_companies("%")

        assert result["users"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", "x" * 101])
    async def test_invalid_query(self, query):
        with pytest.raises(ValidationError):
            await search_service.search_users_and_companies(query)
