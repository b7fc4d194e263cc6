from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Text,
    JSON,
    Enum as SQLEnum,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.companies import Company


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    JOB_SEEKER = "job_seeker"
    EMPLOYER = "employer"
    COMPANY_ADMIN = "company_admin"
    SUPER_ADMIN = "super_admin"


class JobSeekerStatus(str, PyEnum):
    OPEN_TO_WORK = "open_to_work"
    NOT_LOOKING = "not_looking"
    HIRED = "hired"


class EmployerRoleType(str, PyEnum):
    COMPANY_EMPLOYER = "company_employer"
    INDEPENDENT_RECRUITER = "independent_recruiter"


class EmployerStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FIRED = "fired"


class AdminStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CompanyAdminPermission(str, PyEnum):
    MANAGE_COMPANY_USERS = "manage_company_users"
    MANAGE_COMPANY_JOBS = "manage_company_jobs"
    FIRE_EMPLOYERS = "fire_employers"
    VIEW_COMPANY_REPORTS = "view_company_reports"


class SuperAdminPermission(str, PyEnum):
    MANAGE_ALL_USERS = "manage_all_users"
    MANAGE_ALL_JOBS = "manage_all_jobs"
    MANAGE_ALL_COMPANIES = "manage_all_companies"
    VIEW_SYSTEM_REPORTS = "view_system_reports"
    ASSIGN_ADMINS = "assign_admins"
    REMOVE_ADMINS = "remove_admins"


class SocialPlatform(str, PyEnum):
    LINKEDIN = "LinkedIn"
    TWITTER = "Twitter"
    GITHUB = "GitHub"
    PORTFOLIO = "Portfolio"


# ================== User Model ==================== #
class User(Base, TimestampMixin, SoftDeleteMixin):
    """
    Canonical identity. Exactly one role, with one role-specific profile row.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    auth_id: Mapped[str] = mapped_column(
        String(128), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=50), nullable=False
    )

    # Relationships
    profile: Mapped["UserProfile"] = relationship(
        "UserProfile", back_populates="user", uselist=False, lazy="selectin"
    )
    job_seeker: Mapped["JobSeeker | None"] = relationship(
        "JobSeeker", back_populates="user", uselist=False, lazy="selectin"
    )
    employer: Mapped["Employer | None"] = relationship(
        "Employer", back_populates="user", uselist=False, lazy="selectin"
    )
    company_admin: Mapped["CompanyAdmin | None"] = relationship(
        "CompanyAdmin", back_populates="user", uselist=False, lazy="selectin"
    )
    super_admin: Mapped["SuperAdmin | None"] = relationship(
        "SuperAdmin", back_populates="user", uselist=False, lazy="selectin"
    )

    @property
    def role_profile(self):
        """The profile row selected by ``role``."""
        return {
            UserRole.JOB_SEEKER: self.job_seeker,
            UserRole.EMPLOYER: self.employer,
            UserRole.COMPANY_ADMIN: self.company_admin,
            UserRole.SUPER_ADMIN: self.super_admin,
        }[self.role]

    @property
    def full_name(self) -> str | None:
        return self.profile.full_name if self.profile else None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"


# ================== User Profile Model ==================== #
class UserProfile(Base, TimestampMixin, SoftDeleteMixin):
    """Public profile shared by every role."""

    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    profile_picture: Mapped[str | None] = mapped_column(String(1000))
    bio: Mapped[str | None] = mapped_column(Text)
    country: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(20))
    # [{"platform": "GitHub", "url": "..."}]
    social_links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    is_profile_complete: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="profile")

    def refresh_completeness(self) -> None:
        self.is_profile_complete = bool(self.full_name and self.country and self.city)


# ================== Role Profiles ==================== #
class JobSeeker(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "job_seekers"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    skills: Mapped[list[str]] = mapped_column(JSON, default=list)
    education: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    experience: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    job_preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[JobSeekerStatus] = mapped_column(
        SQLEnum(JobSeekerStatus, native_enum=False, length=50),
        nullable=False,
        default=JobSeekerStatus.OPEN_TO_WORK,
    )
    # Structured resume produced by the resume generator or edited by the user
    resume: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    resume_url: Mapped[str | None] = mapped_column(String(1000))

    user: Mapped["User"] = relationship("User", back_populates="job_seeker")


class Employer(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "employers"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    role_type: Mapped[EmployerRoleType] = mapped_column(
        SQLEnum(EmployerRoleType, native_enum=False, length=50),
        nullable=False,
        default=EmployerRoleType.INDEPENDENT_RECRUITER,
    )
    company_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("companies.id", ondelete="SET NULL"), index=True
    )
    status: Mapped[EmployerStatus] = mapped_column(
        SQLEnum(EmployerStatus, native_enum=False, length=50),
        nullable=False,
        default=EmployerStatus.ACTIVE,
    )

    user: Mapped["User"] = relationship("User", back_populates="employer")
    company: Mapped["Company | None"] = relationship(
        "Company", back_populates="employers"
    )


class CompanyAdmin(Base, TimestampMixin, SoftDeleteMixin):
    """A company has at most one admin; ``company_id`` is unique when set."""

    __tablename__ = "company_admins"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    company_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("companies.id", ondelete="SET NULL"), unique=True
    )
    permissions: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: [p.value for p in CompanyAdminPermission]
    )
    status: Mapped[AdminStatus] = mapped_column(
        SQLEnum(AdminStatus, native_enum=False, length=50),
        nullable=False,
        default=AdminStatus.ACTIVE,
    )

    user: Mapped["User"] = relationship("User", back_populates="company_admin")
    company: Mapped["Company | None"] = relationship(
        "Company", back_populates="admin"
    )


class SuperAdmin(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "super_admins"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    permissions: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: [p.value for p in SuperAdminPermission]
    )
    status: Mapped[AdminStatus] = mapped_column(
        SQLEnum(AdminStatus, native_enum=False, length=50),
        nullable=False,
        default=AdminStatus.ACTIVE,
    )

    user: Mapped["User"] = relationship("User", back_populates="super_admin")
