"""
Authentication endpoints.

The identity provider authenticates the person; these endpoints exchange its
ID token for an access token issued by this service.
"""

from fastapi import APIRouter, status

from api.schemas.users import LoginRequest, RegisterRequest, TokenResponse
from api.services import users as user_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account for a verified identity with one role.",
)
async def register(body: RegisterRequest):
    return await user_service.register(body.id_token, body.role, body.full_name)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    description="Exchange an identity provider ID token for an access token.",
)
async def login(body: LoginRequest):
    return await user_service.login(body.id_token)
