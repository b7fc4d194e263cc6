"""
Tests for the register and login endpoints.
"""

import pytest

from tests.factories import make_id_token

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_token(self, client):
        response = await client.post(REGISTER, json={
            "id_token": make_id_token("idp-1", "ada@example.com"),
            "role": "job_seeker",
            "full_name": "Ada Lovelace",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "ada@example.com"

        me = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["profile"]["full_name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client):
        payload = {
            "id_token": make_id_token("idp-2", "grace@example.com"),
            "role": "employer",
            "full_name": "Grace",
        }
        await client.post(REGISTER, json=payload)

        response = await client.post(REGISTER, json=payload)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_unknown_role_is_a_validation_error(self, client):
        response = await client.post(REGISTER, json={
            "id_token": make_id_token("idp-3", "x@example.com"),
            "role": "wizard",
            "full_name": "X",
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_expired_identity_token(self, client):
        response = await client.post(REGISTER, json={
            "id_token": make_id_token("idp-4", "late@example.com", expires_in=-60),
            "role": "job_seeker",
            "full_name": "Late",
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_FAILED"


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_after_register(self, client):
        token = make_id_token("idp-5", "login@example.com")
        await client.post(REGISTER, json={"id_token": token, "role": "employer", "full_name": "L"})

        response = await client.post(LOGIN, json={"id_token": token})

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "employer"

    @pytest.mark.asyncio
    async def test_login_without_account(self, client):
        response = await client.post(
            LOGIN, json={"id_token": make_id_token("idp-6", "nobody@example.com")}
        )

        assert response.status_code == 404
        assert response.json()["error"]["path"] == LOGIN
