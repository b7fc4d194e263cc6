"""
Account, profile and resume endpoints for the signed-in user.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import get_current_user, require_roles
from api.schemas.users import ProfileUpdate, ResumeUpdate
from api.services import connections as connection_service
from api.services import users as user_service
from database.models.users import User, UserRole

router = APIRouter(prefix="/users", tags=["users"])

job_seeker_only = require_roles(UserRole.JOB_SEEKER)


@router.get("/me", summary="Get My Profile")
async def get_me(current_user: User = Depends(get_current_user)):
    return await user_service.get_me(current_user.id)


@router.patch(
    "/me",
    summary="Update My Profile",
    description="Partial update of the shared profile and, for job seekers, the job seeker fields.",
)
async def update_me(body: ProfileUpdate, current_user: User = Depends(get_current_user)):
    return await user_service.update_profile(
        current_user.id, body.model_dump(exclude_unset=True)
    )


@router.delete(
    "/me",
    summary="Delete My Account",
    description="Soft-delete the account together with its profiles.",
)
async def delete_me(current_user: User = Depends(get_current_user)):
    return await user_service.delete_account(current_user.id)


@router.post("/me/profile-picture", summary="Upload Profile Picture")
async def upload_profile_picture(
    file: UploadFile = File(..., description="JPEG, PNG, GIF or WebP image"),
    current_user: User = Depends(get_current_user),
):
    data = await file.read()
    return await user_service.upload_profile_picture(
        current_user.id, data, file.content_type or "application/octet-stream"
    )


@router.get("/me/followed-companies", summary="List Followed Companies")
async def list_followed_companies(current_user: User = Depends(get_current_user)):
    return await connection_service.list_followed_companies(current_user.id)


# ==================== Resume ===================== #
@router.post("/me/resume", summary="Upload Resume File")
async def upload_resume(
    file: UploadFile = File(..., description="PDF or DOCX resume"),
    current_user: User = Depends(job_seeker_only),
):
    data = await file.read()
    return await user_service.upload_resume_file(
        current_user.id, data, file.content_type or "application/octet-stream"
    )


@router.post(
    "/me/resume/generate",
    summary="Generate Resume",
    description="Generate a structured resume from the profile with the language model.",
)
async def generate_resume(current_user: User = Depends(job_seeker_only)):
    return await user_service.generate_resume(current_user.id)


@router.get("/me/resume", summary="Get Resume")
async def get_resume(current_user: User = Depends(job_seeker_only)):
    return await user_service.get_resume(current_user.id)


@router.put("/me/resume", summary="Replace Resume")
async def update_resume(body: ResumeUpdate, current_user: User = Depends(job_seeker_only)):
    return await user_service.update_resume(current_user.id, body.resume)


@router.delete("/me/resume", summary="Delete Resume")
async def delete_resume(current_user: User = Depends(job_seeker_only)):
    return await user_service.delete_resume(current_user.id)
