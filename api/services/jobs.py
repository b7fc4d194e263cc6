"""
Job service functions for API endpoints.

Employers and company admins post jobs; anyone can search open jobs.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import notifications as notification_service
from api.services.common import (
    load_user_with_role,
    page_offset,
    paginated,
    timestamps,
)
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from core.permissions import has_company_permission
from core.utils.datetime import isoformat, now, parse_datetime
from core.utils.validators import validate_deadline, validate_salary_range
from database.engine import AsyncSessionLocal
from database.models.applications import Application
from database.models.companies import Company, CompanyFollow
from database.models.jobs import ExperienceLevel, Job, JobStatus, JobType
from database.models.notifications import NotificationType
from database.models.users import (
    CompanyAdminPermission,
    EmployerRoleType,
    EmployerStatus,
    JobSeeker,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "requirements",
    "skills",
    "job_type",
    "experience_level",
    "country",
    "city",
    "salary_min",
    "salary_max",
    "currency",
    "application_deadline",
)


def serialize_job(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "requirements": list(job.requirements or []),
        "skills": list(job.skills or []),
        "job_type": job.job_type.value,
        "experience_level": job.experience_level.value,
        "country": job.country,
        "city": job.city,
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "currency": job.currency.value,
        "application_deadline": isoformat(job.application_deadline),
        "status": job.status.value,
        "posted_by_id": job.posted_by_id,
        "company_id": job.company_id,
        **timestamps(job),
    }


def _check_job_values(salary_min, salary_max, deadline) -> None:
    ok, error = validate_salary_range(salary_min, salary_max)
    if not ok:
        raise ValidationError(error)
    ok, error = validate_deadline(deadline)
    if not ok:
        raise ValidationError(error)


async def load_job(session: AsyncSession, job_id: int) -> Job:
    job = await session.scalar(select(Job).where(Job.id == job_id))
    if not job:
        raise NotFoundError("Job not found")
    return job


async def can_manage_job(session: AsyncSession, user_id: int, job: Job) -> bool:
    """The poster, or the admin of the job's company with Manage Company Jobs."""
    if job.posted_by_id == user_id:
        return True
    if job.company_id is None:
        return False
    return await has_company_permission(
        session, user_id, CompanyAdminPermission.MANAGE_COMPANY_JOBS, job.company_id
    )


async def _load_managed_job(session: AsyncSession, user_id: int, job_id: int) -> Job:
    job = await load_job(session, job_id)
    if not await can_manage_job(session, user_id, job):
        raise UnauthorizedError("Unauthorized: You cannot manage this job")
    return job


async def _posting_company_id(session: AsyncSession, user: User) -> Optional[int]:
    """Company a new job belongs to, checking the poster may post at all."""
    if user.role == UserRole.EMPLOYER:
        employer = user.employer
        if employer.status != EmployerStatus.ACTIVE:
            raise UnauthorizedError("Unauthorized: Your employer account is not active")
        if employer.role_type == EmployerRoleType.COMPANY_EMPLOYER:
            return employer.company_id
        return None

    admin = user.company_admin
    if admin.company_id is None:
        raise ValidationError("Create or join a company before posting jobs")
    if not await has_company_permission(
        session, user.id, CompanyAdminPermission.MANAGE_COMPANY_JOBS, admin.company_id
    ):
        raise UnauthorizedError("Unauthorized: Missing permission to manage company jobs")
    return admin.company_id


async def _follower_ids(session: AsyncSession, company_id: int) -> List[int]:
    result = await session.execute(
        select(CompanyFollow.user_id).where(CompanyFollow.company_id == company_id)
    )
    return list(result.scalars().all())


async def create_job(user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a job posting as Draft or Open.

    Args:
        user_id: Employer or company admin posting the job
        data: Job fields (see ``EDITABLE_FIELDS``) plus optional ``status``

    Returns:
        The created job
    """
    status = JobStatus(data.get("status") or JobStatus.DRAFT)
    if status == JobStatus.CLOSED:
        raise ValidationError("A new job must be Draft or Open")
    _check_job_values(
        data.get("salary_min"), data.get("salary_max"), data.get("application_deadline")
    )

    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.EMPLOYER, UserRole.COMPANY_ADMIN, action="post jobs"
        )
        company_id = await _posting_company_id(session, user)

        job = Job(
            posted_by_id=user.id,
            company_id=company_id,
            status=status,
            **{key: data[key] for key in EDITABLE_FIELDS if data.get(key) is not None},
        )
        session.add(job)
        await session.commit()

        followers: List[int] = []
        if company_id is not None and status == JobStatus.OPEN:
            followers = await _follower_ids(session, company_id)

        job_data = serialize_job(job)

    logger.info(f"Job {job.id} created by user {user_id} ({status.value})")
    if followers:
        await notification_service.send_notifications_to_users(
            followers,
            NotificationType.NEW_JOB,
            f"New job posted: {job.title}",
            related_id=job.id,
        )
    return job_data


async def update_job(user_id: int, job_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Update job fields. Status changes go through ``toggle_job_status``."""
    async with AsyncSessionLocal() as session:
        job = await _load_managed_job(session, user_id, job_id)

        updates = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        _check_job_values(
            updates.get("salary_min", job.salary_min),
            updates.get("salary_max", job.salary_max),
            updates.get("application_deadline"),
        )

        for key, value in updates.items():
            setattr(job, key, value)

        await session.commit()
        return serialize_job(job)


async def delete_job(user_id: int, job_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        job = await _load_managed_job(session, user_id, job_id)
        job.soft_delete()
        await session.commit()

    logger.info(f"Job {job_id} deleted by user {user_id}")
    return {"message": "Job deleted successfully", "id": job_id}


async def get_job(job_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        job = await load_job(session, job_id)
        applicant_count = await session.scalar(
            select(func.count(Application.id)).where(Application.job_id == job.id)
        )
        company = None
        if job.company_id is not None:
            company_row = await session.scalar(
                select(Company).where(Company.id == job.company_id)
            )
            if company_row:
                company = {"id": company_row.id, "name": company_row.name, "logo": company_row.logo}

        data = serialize_job(job)
        data["applicant_count"] = applicant_count or 0
        data["company"] = company
        return data


async def search_jobs(
    keyword: Optional[str] = None,
    country: Optional[str] = None,
    city: Optional[str] = None,
    job_type: Optional[JobType] = None,
    experience_level: Optional[ExperienceLevel] = None,
    min_salary: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    """
    Search open jobs.

    Args:
        keyword: Matched case-insensitively against title and description
        country: Exact country (case-insensitive)
        city: Exact city (case-insensitive)
        job_type: Job type filter
        experience_level: Experience level filter
        min_salary: Only jobs whose maximum salary reaches this floor
        page: Page number (1-indexed)
        page_size: Items per page

    Returns:
        Paginated jobs, newest first
    """
    conditions = [Job.status == JobStatus.OPEN]
    if keyword:
        pattern = f"%{keyword.strip()}%"
        conditions.append(or_(Job.title.ilike(pattern), Job.description.ilike(pattern)))
    if country:
        conditions.append(func.lower(Job.country) == country.strip().lower())
    if city:
        conditions.append(func.lower(Job.city) == city.strip().lower())
    if job_type:
        conditions.append(Job.job_type == job_type)
    if experience_level:
        conditions.append(Job.experience_level == experience_level)
    if min_salary is not None:
        conditions.append(Job.salary_max >= min_salary)

    async with AsyncSessionLocal() as session:
        total = await session.scalar(select(func.count(Job.id)).where(*conditions)) or 0
        result = await session.execute(
            select(Job)
            .where(*conditions)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [serialize_job(job) for job in result.scalars().all()]

    return paginated(items, total, page, page_size)


async def list_company_jobs(
    company_id: int,
    status: Optional[JobStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        company = await session.scalar(select(Company).where(Company.id == company_id))
        if not company:
            raise NotFoundError("Company not found")

        conditions = [Job.company_id == company_id]
        if status:
            conditions.append(Job.status == status)

        total = await session.scalar(select(func.count(Job.id)).where(*conditions)) or 0
        result = await session.execute(
            select(Job)
            .where(*conditions)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [serialize_job(job) for job in result.scalars().all()]

    return paginated(items, total, page, page_size)


# Draft jobs open; open and closed jobs swap
NEXT_STATUS = {
    JobStatus.DRAFT: JobStatus.OPEN,
    JobStatus.OPEN: JobStatus.CLOSED,
    JobStatus.CLOSED: JobStatus.OPEN,
}


async def toggle_job_status(user_id: int, job_id: int) -> Dict[str, Any]:
    """
    Open a draft job, or switch an open job to closed and back.

    Every applicant is notified of the change.
    """
    async with AsyncSessionLocal() as session:
        job = await _load_managed_job(session, user_id, job_id)
        new_status = NEXT_STATUS[job.status]
        if new_status == JobStatus.OPEN and not validate_deadline(job.application_deadline)[0]:
            raise ValidationError("Cannot open a job whose application deadline has passed")
        job.status = new_status
        await session.commit()

        result = await session.execute(
            select(JobSeeker.user_id)
            .join(Application, Application.job_seeker_id == JobSeeker.id)
            .where(Application.job_id == job.id)
        )
        applicant_user_ids = list(result.scalars().all())
        title = job.title

    logger.info(f"Job {job_id} is now {new_status.value}")
    notified = 0
    if applicant_user_ids:
        notified = await notification_service.send_notifications_to_users(
            applicant_user_ids,
            NotificationType.APPLICATION_UPDATE,
            f"The job {title} is now {new_status.value}",
            related_id=job_id,
        )
    return {"id": job_id, "status": new_status.value, "notified": notified}


# ==================== Recommendations ===================== #
RECOMMENDATION_THRESHOLD = 50


def experience_years(entries: List[Dict[str, Any]]) -> float:
    """Total years across experience entries; an entry without an end date runs until now."""
    days = 0
    for entry in entries or []:
        start = parse_datetime(entry.get("start_date"))
        if start is None:
            continue
        end = parse_datetime(entry.get("end_date")) or now()
        days += max(0, (end - start).days)
    return days / 365.25


def level_for_years(years: float) -> ExperienceLevel:
    if years <= 2:
        return ExperienceLevel.ENTRY
    if years <= 5:
        return ExperienceLevel.MID
    return ExperienceLevel.SENIOR


def match_score(job: Job, seeker: JobSeeker) -> float:
    """
    Score how well a job fits a job seeker, out of 100.

    Skills overlap is worth 40, preferred city 20, preferred job type 20,
    experience level 10 and meeting the salary expectation 10.
    """
    preferences = seeker.job_preferences or {}
    score = 0.0

    job_skills = {skill.strip().lower() for skill in job.skills or [] if skill.strip()}
    seeker_skills = {skill.strip().lower() for skill in seeker.skills or []}
    if job_skills:
        score += len(job_skills & seeker_skills) / len(job_skills) * 40

    location = (preferences.get("location") or "").strip().lower()
    if location and location == (job.city or "").strip().lower():
        score += 20

    job_types = preferences.get("job_types") or []
    if isinstance(job_types, str):
        job_types = [job_types]
    if job.job_type.value in job_types:
        score += 20

    if level_for_years(experience_years(seeker.experience)) == job.experience_level:
        score += 10

    expectation = preferences.get("salary_expectation")
    if expectation and job.salary_max is not None and job.salary_max >= expectation:
        score += 10

    return score


async def get_job_recommendations(user_id: int, limit: int = 20) -> Dict[str, Any]:
    """Open jobs scoring at least ``RECOMMENDATION_THRESHOLD`` for the caller, best first."""
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="get job recommendations"
        )
        seeker = user.job_seeker
        result = await session.execute(select(Job).where(Job.status == JobStatus.OPEN))
        scored = [(match_score(job, seeker), job) for job in result.scalars().all()]

    matches = sorted(
        (pair for pair in scored if pair[0] >= RECOMMENDATION_THRESHOLD),
        key=lambda pair: (-pair[0], -pair[1].id),
    )[:limit]
    return {
        "items": [
            {**serialize_job(job), "match_score": round(score, 1)} for score, job in matches
        ],
        "total": len(matches),
    }
