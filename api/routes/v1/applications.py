"""
Job application endpoints.

A job seeker stages an application (ATS score, cover letter), then applies;
applying again withdraws. The AI endpoints share the strict rate limit.
"""

from fastapi import APIRouter, Depends, Path

from api.dependencies import get_pagination_params, require_roles
from api.schemas.common import PaginationParams
from api.schemas.jobs import ApplicationStatusUpdate
from api.services import applications as application_service
from database.models.users import User, UserRole

router = APIRouter(prefix="/applications", tags=["applications"])

job_seeker_only = require_roles(UserRole.JOB_SEEKER)


@router.post(
    "/jobs/{job_id}/ats-score",
    summary="Score Resume Against Job",
    description="Score the stored resume against the job and suggest improvements.",
)
async def ats_score(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.get_ats_score_and_suggestions(current_user.id, job_id)


@router.post(
    "/jobs/{job_id}/cover-letter",
    summary="Generate Cover Letter",
    description="Generate a cover letter for the job. Required before applying.",
)
async def cover_letter(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.generate_cover_letter_for_job(current_user.id, job_id)


@router.post(
    "/jobs/{job_id}/apply",
    summary="Apply Or Withdraw",
    description="Submit the staged application, or withdraw an existing one.",
)
async def apply_for_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.apply_for_job(current_user.id, job_id)


@router.post("/jobs/{job_id}/save", summary="Save Or Unsave Job")
async def save_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.save_job(current_user.id, job_id)


@router.patch(
    "/{application_id}/status",
    summary="Update Application Status",
    description="Move an application forward in review, or reject it. Hiring has its own endpoint.",
)
async def update_status(
    body: ApplicationStatusUpdate,
    application_id: int = Path(..., description="Application ID"),
    current_user: User = Depends(require_roles(UserRole.EMPLOYER)),
):
    return await application_service.update_application_status(
        current_user.id, application_id, body.status
    )


# ==================== Job seeker views ===================== #
@router.get("/saved", summary="Saved Jobs")
async def saved_jobs(
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.get_saved_jobs(
        current_user.id, pagination.page, pagination.page_size
    )


@router.get("/applied", summary="Applied Jobs")
async def applied_jobs(
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(job_seeker_only),
):
    return await application_service.get_applied_jobs(
        current_user.id, pagination.page, pagination.page_size
    )


@router.get("/pending", summary="Staged Applications")
async def pending_applications(current_user: User = Depends(job_seeker_only)):
    return await application_service.get_pending_applications(current_user.id)
