"""
Super admin operations and reports.

Every operation here checks one super admin permission. Listings accept an
``include_deleted`` flag that lifts the default soft-delete filter.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import companies as company_service
from api.services.common import load_user, page_offset, paginated, user_summary
from api.services.companies import load_company, serialize_company
from api.services.jobs import serialize_job
from api.services.users import soft_delete_user
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from core.permissions import (
    has_company_permission,
    has_super_admin_permission,
    invalidate_admin_permissions,
)
from core.utils.datetime import days_ago, isoformat
from database.engine import AsyncSessionLocal
from database.models.applications import Application, ApplicationStatus, Hire
from database.models.companies import Company
from database.models.jobs import Job, JobStatus
from database.models.users import (
    AdminStatus,
    CompanyAdmin,
    CompanyAdminPermission,
    Employer,
    EmployerStatus,
    JobSeeker,
    JobSeekerStatus,
    SuperAdminPermission,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

RECENT_DAYS = 7
TREND_DAYS = 30


async def _require_super_admin(
    session: AsyncSession, user_id: int, permission: SuperAdminPermission
) -> None:
    if not await has_super_admin_permission(session, user_id, permission):
        raise UnauthorizedError(
            f"Unauthorized: Missing super admin permission {permission.value}"
        )


# ==================== Users ===================== #
async def list_users(
    user_id: int,
    role: Optional[UserRole] = None,
    include_deleted: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    conditions = [User.role == role] if role else []
    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.MANAGE_ALL_USERS)

        total = await session.scalar(
            select(func.count(User.id))
            .where(*conditions)
            .execution_options(include_deleted=include_deleted)
        ) or 0
        result = await session.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
            .execution_options(include_deleted=include_deleted)
        )
        items = [
            {
                **user_summary(user),
                "email": user.email,
                "is_deleted": user.is_deleted,
                "created_at": isoformat(user.created_at),
            }
            for user in result.scalars().all()
        ]

    return paginated(items, total, page, page_size)


async def delete_user(user_id: int, target_user_id: int) -> Dict[str, Any]:
    """Soft-delete another account with everything it owns."""
    if user_id == target_user_id:
        raise ValidationError("Use account deletion to delete your own account")

    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.MANAGE_ALL_USERS)
        target = await load_user(session, target_user_id)
        await soft_delete_user(session, target)
        await session.commit()

    await invalidate_admin_permissions(target_user_id)
    logger.info(f"User {target_user_id} deleted by super admin {user_id}")
    return {"message": "User deleted successfully", "id": target_user_id}


# ==================== Jobs ===================== #
async def list_jobs(
    user_id: int,
    status: Optional[JobStatus] = None,
    include_deleted: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    conditions = [Job.status == status] if status else []
    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.MANAGE_ALL_JOBS)

        total = await session.scalar(
            select(func.count(Job.id))
            .where(*conditions)
            .execution_options(include_deleted=include_deleted)
        ) or 0
        result = await session.execute(
            select(Job)
            .where(*conditions)
            .order_by(Job.created_at.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
            .execution_options(include_deleted=include_deleted)
        )
        items = [
            {**serialize_job(job), "is_deleted": job.is_deleted}
            for job in result.scalars().all()
        ]

    return paginated(items, total, page, page_size)


async def delete_job(user_id: int, job_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.MANAGE_ALL_JOBS)
        job = await session.scalar(select(Job).where(Job.id == job_id))
        if job is None:
            raise NotFoundError("Job not found")
        job.soft_delete()
        await session.commit()

    logger.info(f"Job {job_id} deleted by super admin {user_id}")
    return {"message": "Job deleted successfully", "id": job_id}


# ==================== Companies ===================== #
async def list_companies(
    user_id: int, include_deleted: bool = False, page: int = 1, page_size: int = 20
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await _require_super_admin(
            session, user_id, SuperAdminPermission.MANAGE_ALL_COMPANIES
        )

        total = await session.scalar(
            select(func.count(Company.id)).execution_options(include_deleted=include_deleted)
        ) or 0
        result = await session.execute(
            select(Company)
            .order_by(Company.created_at.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
            .execution_options(include_deleted=include_deleted)
        )
        items = [
            {**serialize_company(company), "is_deleted": company.is_deleted}
            for company in result.scalars().all()
        ]

    return paginated(items, total, page, page_size)


async def delete_company(user_id: int, company_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await _require_super_admin(
            session, user_id, SuperAdminPermission.MANAGE_ALL_COMPANIES
        )
    return await company_service.delete_company(user_id, company_id)


async def assign_company_admin(
    user_id: int, company_id: int, admin_user_id: int
) -> Dict[str, Any]:
    """Make a company admin account the admin of a company without one."""
    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.ASSIGN_ADMINS)
        company = await load_company(session, company_id)

        target = await load_user(session, admin_user_id)
        if target.role != UserRole.COMPANY_ADMIN or target.company_admin is None:
            raise ValidationError("User is not a company admin")
        admin = target.company_admin

        current = await session.scalar(
            select(CompanyAdmin.user_id).where(CompanyAdmin.company_id == company.id)
        )
        if current == target.id:
            raise ConflictError("User already administers this company")
        if current is not None:
            raise ConflictError("This company already has an admin")
        if admin.company_id is not None:
            raise ConflictError("User already administers another company")

        admin.company_id = company.id
        admin.status = AdminStatus.ACTIVE
        await session.commit()

    await invalidate_admin_permissions(admin_user_id)
    logger.info(f"User {admin_user_id} assigned admin of company {company_id}")
    return {
        "message": "Company admin assigned successfully",
        "company_id": company_id,
        "admin_user_id": admin_user_id,
    }


async def remove_company_admin(user_id: int, company_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await _require_super_admin(session, user_id, SuperAdminPermission.REMOVE_ADMINS)
        company = await load_company(session, company_id)

        admin = await session.scalar(
            select(CompanyAdmin).where(CompanyAdmin.company_id == company.id)
        )
        if admin is None:
            raise NotFoundError("This company has no admin")
        admin.company_id = None
        await session.commit()

    await invalidate_admin_permissions(admin.user_id)
    logger.info(f"Admin of company {company_id} removed by super admin {user_id}")
    return {
        "message": "Company admin removed successfully",
        "company_id": company_id,
        "admin_user_id": admin.user_id,
    }


# ==================== Reports ===================== #
async def _count(session: AsyncSession, column, *conditions, include_deleted: bool = False) -> int:
    return await session.scalar(
        select(func.count(column))
        .where(*conditions)
        .execution_options(include_deleted=include_deleted)
    ) or 0


async def _grouped(session: AsyncSession, column, key, *conditions) -> Dict[str, int]:
    result = await session.execute(
        select(key, func.count(column)).where(*conditions).group_by(key)
    )
    return {
        (value.value if hasattr(value, "value") else str(value)): count
        for value, count in result.all()
    }


async def _daily_trend(session: AsyncSession, model) -> Dict[str, int]:
    day = func.date(model.created_at)
    result = await session.execute(
        select(day, func.count(model.id))
        .where(model.created_at >= days_ago(TREND_DAYS))
        .group_by(day)
        .order_by(day)
        .execution_options(include_deleted=True)
    )
    trend = defaultdict(int)
    for value, count in result.all():
        trend[str(value)] += count
    return dict(trend)


async def get_system_reports(user_id: int) -> Dict[str, Any]:
    """
    Platform-wide counts.

    Totals count live rows; ``deleted_users`` and the daily trends include
    soft-deleted rows so history does not shrink when accounts are removed.
    """
    recent = days_ago(RECENT_DAYS)
    async with AsyncSessionLocal() as session:
        await _require_super_admin(
            session, user_id, SuperAdminPermission.VIEW_SYSTEM_REPORTS
        )

        return {
            "users": {
                "total": await _count(session, User.id),
                "by_role": await _grouped(session, User.id, User.role),
                "new_last_7_days": await _count(session, User.id, User.created_at >= recent),
                "deleted": await _count(
                    session, User.id, User.is_deleted.is_(True), include_deleted=True
                ),
                "daily_trend": await _daily_trend(session, User),
            },
            "jobs": {
                "total": await _count(session, Job.id),
                "by_status": await _grouped(session, Job.id, Job.status),
                "new_last_7_days": await _count(session, Job.id, Job.created_at >= recent),
                "daily_trend": await _daily_trend(session, Job),
            },
            "applications": {
                "total": await _count(session, Application.id),
                "new_last_7_days": await _count(
                    session, Application.id, Application.applied_at >= recent
                ),
                "hires": await _count(session, Hire.id),
            },
            "companies": {
                "total": await _count(session, Company.id),
                "new_last_7_days": await _count(
                    session, Company.id, Company.created_at >= recent
                ),
            },
            "employers": {
                "total": await _count(session, Employer.id),
                "by_role_type": await _grouped(session, Employer.id, Employer.role_type),
                "active": await _count(
                    session, Employer.id, Employer.status == EmployerStatus.ACTIVE
                ),
            },
            "job_seekers": {
                "total": await _count(session, JobSeeker.id),
                "by_status": await _grouped(session, JobSeeker.id, JobSeeker.status),
                "open_to_work": await _count(
                    session, JobSeeker.id, JobSeeker.status == JobSeekerStatus.OPEN_TO_WORK
                ),
            },
        }


async def get_company_reports(user_id: int, company_id: int) -> Dict[str, Any]:
    """
    Counts for one company. Open to its admin with View Company Reports, or to
    a super admin with View System Reports.
    """
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        allowed = await has_company_permission(
            session, user_id, CompanyAdminPermission.VIEW_COMPANY_REPORTS, company.id
        ) or await has_super_admin_permission(
            session, user_id, SuperAdminPermission.VIEW_SYSTEM_REPORTS
        )
        if not allowed:
            raise UnauthorizedError("Unauthorized: You cannot view this company's reports")

        application_status = await session.execute(
            select(Application.status, func.count(Application.id))
            .join(Job, Job.id == Application.job_id)
            .where(Job.company_id == company.id)
            .group_by(Application.status)
        )
        by_application_status = {status.value: 0 for status in ApplicationStatus}
        for status, count in application_status.all():
            by_application_status[status.value] = count

        return {
            "company_id": company.id,
            "total_employees": await _count(
                session, Employer.id, Employer.company_id == company.id
            ),
            "total_jobs": await _count(session, Job.id, Job.company_id == company.id),
            "jobs_by_status": await _grouped(
                session, Job.id, Job.status, Job.company_id == company.id
            ),
            "applications_by_status": by_application_status,
        }
