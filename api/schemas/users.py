"""Account, profile and resume schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from api.schemas.common import SocialLink
from database.models.users import JobSeekerStatus, UserRole


class RegisterRequest(BaseModel):
    """Register with an identity provider ID token."""

    id_token: str = Field(min_length=1, description="ID token issued by the identity provider")
    role: UserRole = Field(description="Account role")
    full_name: str = Field(min_length=1, max_length=200, description="Display name")

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v


class LoginRequest(BaseModel):
    id_token: str = Field(min_length=1, description="ID token issued by the identity provider")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict[str, Any]


class ProfileUpdate(BaseModel):
    """
    Partial profile update. Job seeker fields are rejected for other roles.
    """

    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    bio: Optional[str] = Field(None, max_length=2000)
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(
        None, pattern=r"^\+?[1-9]\d{1,14}$", description="Phone number in E.164 format"
    )
    social_links: Optional[list[SocialLink]] = None

    skills: Optional[list[str]] = None
    education: Optional[list[dict[str, Any]]] = None
    experience: Optional[list[dict[str, Any]]] = None
    job_preferences: Optional[dict[str, Any]] = None
    status: Optional[JobSeekerStatus] = None


class ResumeUpdate(BaseModel):
    resume: dict[str, Any] = Field(description="Structured resume document")
