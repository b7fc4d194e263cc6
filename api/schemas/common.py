"""Common Pydantic schemas shared across the API."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from database.models.users import SocialPlatform


T = TypeVar("T")


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")

    @property
    def offset(self) -> int:
        """Calculate offset from page and page_size."""
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response wrapper."""

    items: list[T] = Field(description="List of items for this page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    page: int = Field(ge=1, description="Current page number")
    page_size: int = Field(ge=1, le=100, description="Items per page")
    total_pages: int = Field(ge=0, description="Total number of pages")


class SocialLink(BaseModel):
    """A profile link on one of the supported platforms."""

    model_config = ConfigDict(use_enum_values=True)

    platform: SocialPlatform
    url: str = Field(min_length=1, max_length=1000)


class MessageResponse(BaseModel):
    message: str = Field(description="Human readable outcome")


class ErrorDetail(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Error message")
    path: Optional[str] = Field(None, description="Request path")
    method: Optional[str] = Field(None, description="Request method")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorDetail
