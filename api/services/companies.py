"""
Company directory service functions.

A company has at most one admin. Company admin operations are gated by the
admin's permission set (Manage Company Users, Manage Company Jobs, Fire
Employers, View Company Reports); super admins with Manage All Companies can
create and delete any company.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import notifications as notification_service
from api.services.common import (
    load_user,
    load_user_with_role,
    page_offset,
    paginated,
    timestamps,
    user_summary,
)
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from core.permissions import (
    has_company_permission,
    has_super_admin_permission,
    invalidate_admin_permissions,
)
from core.utils.validators import validate_social_links, validate_url
from database.engine import AsyncSessionLocal
from database.models.companies import Company, CompanyFollow
from database.models.notifications import NotificationType
from database.models.users import (
    CompanyAdmin,
    CompanyAdminPermission,
    Employer,
    EmployerRoleType,
    EmployerStatus,
    SuperAdminPermission,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

COMPANY_FIELDS = (
    "name",
    "logo",
    "industry",
    "country",
    "city",
    "website",
    "description",
    "company_size",
    "founded_year",
    "social_links",
)


def serialize_company(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "name": company.name,
        "logo": company.logo,
        "industry": company.industry,
        "country": company.country,
        "city": company.city,
        "website": company.website,
        "description": company.description,
        "company_size": company.company_size.value if company.company_size else None,
        "founded_year": company.founded_year,
        "social_links": list(company.social_links or []),
        **timestamps(company),
    }


def _check_company_values(data: Dict[str, Any]) -> None:
    if "name" in data and not (data["name"] or "").strip():
        raise ValidationError("Company name is required")
    if data.get("website"):
        ok, error = validate_url(data["website"])
        if not ok:
            raise ValidationError(error)
    if data.get("social_links"):
        ok, error = validate_social_links(data["social_links"])
        if not ok:
            raise ValidationError(error)


async def load_company(session: AsyncSession, company_id: int) -> Company:
    company = await session.scalar(select(Company).where(Company.id == company_id))
    if company is None:
        raise NotFoundError("Company not found")
    return company


async def _check_name_free(session: AsyncSession, name: str, company_id: Optional[int] = None) -> None:
    # names stay reserved by soft-deleted companies
    existing = await session.scalar(
        select(Company.id)
        .where(func.lower(Company.name) == name.strip().lower())
        .execution_options(include_deleted=True)
    )
    if existing is not None and existing != company_id:
        raise ConflictError("A company with this name already exists")


async def _require_company_permission(
    session: AsyncSession,
    user_id: int,
    company_id: int,
    permission: Optional[CompanyAdminPermission],
) -> None:
    if not await has_company_permission(session, user_id, permission, company_id):
        raise UnauthorizedError("Unauthorized: You do not manage this company")


async def create_company(user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a company.

    A company admin without a company becomes its admin. A super admin needs
    the Manage All Companies permission and creates it without an admin.
    """
    _check_company_values(data)
    if not (data.get("name") or "").strip():
        raise ValidationError("Company name is required")

    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session,
            user_id,
            UserRole.COMPANY_ADMIN,
            UserRole.SUPER_ADMIN,
            action="create companies",
        )
        if user.role == UserRole.SUPER_ADMIN:
            if not await has_super_admin_permission(
                session, user_id, SuperAdminPermission.MANAGE_ALL_COMPANIES
            ):
                raise UnauthorizedError("Unauthorized: Missing permission to manage companies")
        elif user.company_admin.company_id is not None:
            raise ConflictError("You already administer a company")

        await _check_name_free(session, data["name"])

        company = Company(
            **{key: data[key] for key in COMPANY_FIELDS if data.get(key) is not None}
        )
        company.name = company.name.strip()
        session.add(company)
        await session.flush()

        if user.role == UserRole.COMPANY_ADMIN:
            user.company_admin.company_id = company.id
        await session.commit()

    if user.role == UserRole.COMPANY_ADMIN:
        await invalidate_admin_permissions(user_id)
    logger.info(f"Company {company.id} created by user {user_id}")
    return serialize_company(company)


async def get_company(company_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)

        admin_user_id = await session.scalar(
            select(CompanyAdmin.user_id).where(CompanyAdmin.company_id == company.id)
        )
        employee_count = await session.scalar(
            select(func.count(Employer.id)).where(Employer.company_id == company.id)
        ) or 0
        follower_count = await session.scalar(
            select(func.count(CompanyFollow.id)).where(CompanyFollow.company_id == company.id)
        ) or 0

        data = serialize_company(company)
        data.update(
            admin_user_id=admin_user_id,
            employee_count=employee_count,
            follower_count=follower_count,
        )
        return data


async def update_company(user_id: int, company_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Only the company's own active admin can edit it."""
    updates = {key: value for key, value in changes.items() if key in COMPANY_FIELDS}
    _check_company_values(updates)

    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        await _require_company_permission(session, user_id, company.id, None)

        if "name" in updates:
            await _check_name_free(session, updates["name"], company.id)
            updates["name"] = updates["name"].strip()

        for key, value in updates.items():
            setattr(company, key, value)
        await session.commit()
        return serialize_company(company)


async def delete_company(user_id: int, company_id: int) -> Dict[str, Any]:
    """
    Soft-delete a company. Its employers become independent recruiters and
    its admin is detached.
    """
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        is_super = await has_super_admin_permission(
            session, user_id, SuperAdminPermission.MANAGE_ALL_COMPANIES
        )
        if not is_super:
            await _require_company_permission(session, user_id, company.id, None)

        result = await session.execute(select(Employer).where(Employer.company_id == company.id))
        for employer in result.scalars().all():
            employer.company_id = None
            employer.role_type = EmployerRoleType.INDEPENDENT_RECRUITER

        admin = await session.scalar(
            select(CompanyAdmin).where(CompanyAdmin.company_id == company.id)
        )
        if admin is not None:
            admin.company_id = None

        company.soft_delete()
        await session.commit()

    if admin is not None:
        await invalidate_admin_permissions(admin.user_id)
    logger.info(f"Company {company_id} deleted by user {user_id}")
    return {"message": "Company deleted successfully", "id": company_id}


async def list_company_users(
    user_id: int, company_id: int, page: int = 1, page_size: int = 20
) -> Dict[str, Any]:
    """The company's admin and its employer roster."""
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        await _require_company_permission(
            session, user_id, company.id, CompanyAdminPermission.MANAGE_COMPANY_USERS
        )

        conditions = [Employer.company_id == company.id]
        total = await session.scalar(select(func.count(Employer.id)).where(*conditions)) or 0
        result = await session.execute(
            select(Employer, User)
            .join(User, User.id == Employer.user_id)
            .where(*conditions)
            .order_by(Employer.created_at.asc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [
            {
                **user_summary(user),
                "employer_id": employer.id,
                "role_type": employer.role_type.value,
                "status": employer.status.value,
            }
            for employer, user in result.all()
        ]

        admin_user = await session.scalar(
            select(User)
            .join(CompanyAdmin, CompanyAdmin.user_id == User.id)
            .where(CompanyAdmin.company_id == company.id)
        )

    response = paginated(items, total, page, page_size)
    response["admin"] = user_summary(admin_user)
    return response


async def _load_employer_user(session: AsyncSession, employer_user_id: int) -> User:
    user = await load_user(session, employer_user_id)
    if user.role != UserRole.EMPLOYER or user.employer is None:
        raise ValidationError("User is not an employer")
    return user


async def add_company_employer(
    user_id: int, company_id: int, employer_user_id: int
) -> Dict[str, Any]:
    """Add an employer to the roster; they become a Company Employer."""
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        await _require_company_permission(
            session, user_id, company.id, CompanyAdminPermission.MANAGE_COMPANY_USERS
        )
        employer_user = await _load_employer_user(session, employer_user_id)
        employer = employer_user.employer

        if employer.company_id == company.id:
            raise ConflictError("Employer already belongs to this company")
        if employer.company_id is not None:
            raise ConflictError("Employer already belongs to another company")

        employer.company_id = company.id
        employer.role_type = EmployerRoleType.COMPANY_EMPLOYER
        employer.status = EmployerStatus.ACTIVE
        notification = notification_service.stage_notification(
            session,
            employer_user.id,
            NotificationType.EMPLOYER_APPROVAL,
            f"You have been added to {company.name}",
            related_id=company.id,
        )
        await session.commit()

    notification_service.publish([notification])
    return {
        "message": "Employer added successfully",
        "company_id": company_id,
        "employer_user_id": employer_user_id,
    }


async def fire_employer(user_id: int, company_id: int, employer_user_id: int) -> Dict[str, Any]:
    """Mark an employer Fired and take them off the roster."""
    async with AsyncSessionLocal() as session:
        company = await load_company(session, company_id)
        await _require_company_permission(
            session, user_id, company.id, CompanyAdminPermission.FIRE_EMPLOYERS
        )
        employer_user = await _load_employer_user(session, employer_user_id)
        employer = employer_user.employer
        if employer.company_id != company.id:
            raise NotFoundError("Employer not found in this company")

        employer.status = EmployerStatus.FIRED
        employer.company_id = None
        employer.role_type = EmployerRoleType.INDEPENDENT_RECRUITER
        notification = notification_service.stage_notification(
            session,
            employer_user.id,
            NotificationType.EMPLOYER_APPROVAL,
            f"You have been removed from {company.name}",
            related_id=company.id,
        )
        await session.commit()

    notification_service.publish([notification])
    logger.info(f"Employer user {employer_user_id} fired from company {company_id}")
    return {
        "message": "Employer fired successfully",
        "company_id": company_id,
        "employer_user_id": employer_user_id,
    }
