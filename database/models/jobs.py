"""
Jobs Module

Job postings. Applications, saved jobs, staged applications and hires are
rows in ``database.models.applications``.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Integer,
    Text,
    JSON,
    Enum as SQLEnum,
    CheckConstraint,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.companies import Company
    from database.models.users import User


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"


class JobType(str, PyEnum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"


class ExperienceLevel(str, PyEnum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"


class Currency(str, PyEnum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"


# ================== Job Model ==================== #
class Job(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "jobs"
    __table_args__ = (
        CheckConstraint(
            "salary_min IS NULL OR salary_max IS NULL OR salary_min <= salary_max",
            name="ck_job_salary_range",
        ),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    posted_by_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("companies.id", ondelete="SET NULL"), index=True
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requirements: Mapped[list[str]] = mapped_column(JSON, default=list)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list)
    job_type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, native_enum=False, length=30), nullable=False
    )
    experience_level: Mapped[ExperienceLevel] = mapped_column(
        SQLEnum(ExperienceLevel, native_enum=False, length=30), nullable=False
    )
    country: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))
    salary_min: Mapped[int | None] = mapped_column(Integer)
    salary_max: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[Currency] = mapped_column(
        SQLEnum(Currency, native_enum=False, length=10),
        nullable=False,
        default=Currency.USD,
    )
    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=20),
        nullable=False,
        default=JobStatus.DRAFT,
        index=True,
    )

    # Relationships
    posted_by: Mapped["User"] = relationship("User")
    company: Mapped["Company | None"] = relationship("Company")
    applications: Mapped[list["Application"]] = relationship(
        "Application", back_populates="job"
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title}, status={self.status})>"
