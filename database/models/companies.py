"""
Companies Module

Company directory: profile, single admin, employee roster (employers
pointing at the company) and followers.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    Integer,
    JSON,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import CompanyAdmin, Employer


class CompanySize(str, PyEnum):
    SIZE_1_10 = "1-10"
    SIZE_11_50 = "11-50"
    SIZE_51_200 = "51-200"
    SIZE_201_500 = "201-500"
    SIZE_501_1000 = "501-1000"
    SIZE_1000_PLUS = "1000+"


class Company(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    logo: Mapped[str | None] = mapped_column(String(1000))
    industry: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))
    website: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(String(500))
    company_size: Mapped[CompanySize | None] = mapped_column(
        SQLEnum(CompanySize, native_enum=False, length=20)
    )
    founded_year: Mapped[int | None] = mapped_column(Integer)
    social_links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    admin: Mapped["CompanyAdmin | None"] = relationship(
        "CompanyAdmin", back_populates="company", uselist=False
    )
    employers: Mapped[list["Employer"]] = relationship(
        "Employer", back_populates="company"
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"


class CompanyFollow(Base, TimestampMixin):
    __tablename__ = "company_follows"
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_company_follow"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
