"""Company schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from api.schemas.common import SocialLink
from database.models.companies import CompanySize


class CompanyBase(BaseModel):
    logo: Optional[str] = Field(None, max_length=1000)
    industry: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=500)
    company_size: Optional[CompanySize] = None
    founded_year: Optional[int] = Field(None, ge=1800, le=2100)
    social_links: Optional[list[SocialLink]] = None


class CompanyCreate(CompanyBase):
    name: str = Field(min_length=1, max_length=200, description="Unique company name")


class CompanyUpdate(CompanyBase):
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class EmployerRef(BaseModel):
    employer_user_id: int = Field(gt=0, description="User id of the employer")


class AdminAssignment(BaseModel):
    admin_user_id: int = Field(gt=0, description="User id of the company admin account")
