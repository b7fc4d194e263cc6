"""
Job posting endpoints.

Search and detail views are open to every signed-in user; creating and
managing postings is for employers and company admins.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_current_user, get_pagination_params, require_roles
from api.schemas.common import PaginationParams
from api.schemas.jobs import JobCreate, JobUpdate
from api.services import applications as application_service
from api.services import jobs as job_service
from database.models.jobs import ExperienceLevel, JobType
from database.models.users import User, UserRole

router = APIRouter(prefix="/jobs", tags=["jobs"])

job_posters = require_roles(UserRole.EMPLOYER, UserRole.COMPANY_ADMIN)


@router.get(
    "",
    summary="Search Jobs",
    description="Search open jobs by keyword, location, type, experience level and salary floor.",
)
async def search_jobs(
    keyword: Optional[str] = Query(None, max_length=200, description="Matched against title and description"),
    country: Optional[str] = Query(None, max_length=100),
    city: Optional[str] = Query(None, max_length=100),
    job_type: Optional[JobType] = Query(None),
    experience_level: Optional[ExperienceLevel] = Query(None),
    min_salary: Optional[int] = Query(None, ge=0, description="Only jobs paying at least this much"),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await job_service.search_jobs(
        keyword=keyword,
        country=country,
        city=city,
        job_type=job_type,
        experience_level=experience_level,
        min_salary=min_salary,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
    description="Create a Draft or Open job. Company followers hear about open company jobs.",
)
async def create_job(body: JobCreate, current_user: User = Depends(job_posters)):
    return await job_service.create_job(current_user.id, body.model_dump(exclude_unset=True))


@router.get(
    "/recommendations",
    summary="Recommended Jobs",
    description="Open jobs matching the caller's skills, preferences and experience, best match first.",
)
async def recommended_jobs(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_roles(UserRole.JOB_SEEKER)),
):
    return await job_service.get_job_recommendations(current_user.id, limit)


@router.get("/{job_id}", summary="Get Job Details")
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(get_current_user),
):
    return await job_service.get_job(job_id)


@router.patch("/{job_id}", summary="Update Job")
async def update_job(
    body: JobUpdate,
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_posters),
):
    return await job_service.update_job(
        current_user.id, job_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{job_id}", summary="Delete Job")
async def delete_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_posters),
):
    return await job_service.delete_job(current_user.id, job_id)


@router.post(
    "/{job_id}/toggle-status",
    summary="Toggle Job Status",
    description="Open a draft, or switch between Open and Closed. Applicants are notified.",
)
async def toggle_job_status(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_posters),
):
    return await job_service.toggle_job_status(current_user.id, job_id)


@router.get(
    "/{job_id}/applicants",
    summary="List Applicants",
    description="Applicants of a job you posted, best ATS score first.",
)
async def list_applicants(
    job_id: int = Path(..., description="Job ID"),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(require_roles(UserRole.EMPLOYER)),
):
    return await application_service.list_applicants(
        current_user.id, job_id, pagination.page, pagination.page_size
    )


@router.post(
    "/{job_id}/hire/{job_seeker_id}",
    summary="Hire Candidate",
    description="Hire an applicant of a job you posted.",
)
async def hire_candidate(
    job_id: int = Path(..., description="Job ID"),
    job_seeker_id: int = Path(..., description="Job seeker profile ID of the applicant"),
    current_user: User = Depends(require_roles(UserRole.EMPLOYER)),
):
    return await application_service.hire_candidate(current_user.id, job_id, job_seeker_id)
