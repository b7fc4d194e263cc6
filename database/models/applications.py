"""
Applications Module

Job/job-seeker relationship rows: applications, saved jobs, staged (pending)
applications and hires. Each relationship is a single row keyed by
(job, job seeker); the job-side and seeker-side views both read from it.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    ForeignKey,
    DateTime,
    Integer,
    Text,
    JSON,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, IdType
from database.mixins import TimestampMixin
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.jobs import Job
    from database.models.users import Employer, JobSeeker


class ApplicationStatus(str, PyEnum):
    APPLIED = "applied"
    UNDER_REVIEW = "under_review"
    INTERVIEW = "interview"
    OFFERED = "offered"
    HIRED = "hired"
    REJECTED = "rejected"


class Application(Base, TimestampMixin):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("job_id", "job_seeker_id", name="uq_application_job_seeker"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_seeker_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("job_seekers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, native_enum=False, length=30),
        nullable=False,
        default=ApplicationStatus.APPLIED,
        index=True,
    )
    cover_letter: Mapped[str] = mapped_column(Text, nullable=False)
    ats_score: Mapped[int | None] = mapped_column(Integer)
    resume_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    job: Mapped["Job"] = relationship("Job", back_populates="applications")
    job_seeker: Mapped["JobSeeker"] = relationship("JobSeeker")


class SavedJob(Base, TimestampMixin):
    __tablename__ = "saved_jobs"
    __table_args__ = (
        UniqueConstraint("job_id", "job_seeker_id", name="uq_saved_job_job_seeker"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_seeker_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("job_seekers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    job: Mapped["Job"] = relationship("Job")


class PendingApplication(Base, TimestampMixin):
    """Draft staged before applying: ATS score and/or cover letter, one per job."""

    __tablename__ = "pending_applications"
    __table_args__ = (
        UniqueConstraint("job_id", "job_seeker_id", name="uq_pending_job_seeker"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_seeker_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("job_seekers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ats_score: Mapped[int | None] = mapped_column(Integer)
    improvement_suggestions: Mapped[str | None] = mapped_column(Text)
    cover_letter: Mapped[str | None] = mapped_column(Text)

    job: Mapped["Job"] = relationship("Job")


class Hire(Base, TimestampMixin):
    __tablename__ = "hires"
    __table_args__ = (
        UniqueConstraint("job_id", "job_seeker_id", name="uq_hire_job_seeker"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_seeker_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("job_seekers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employer_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("employers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    employer: Mapped["Employer"] = relationship("Employer")
