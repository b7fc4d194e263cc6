"""
Account and profile service functions.

Registration and login verify an identity-provider ID token and answer with
this service's own access token. Every account has exactly one role and one
role-specific profile, created in the same transaction as the user.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agents import career
from agents.career import ResumeDocument
from api.services.common import load_user, load_user_with_role, timestamps
from core.config import settings
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from core.permissions import invalidate_admin_permissions
from core.security import create_access_token, verify_identity_token
from core.storage.s3 import NamingStrategy, UploadFolder, get_storage
from core.utils.validators import validate_phone, validate_social_links
from database.engine import AsyncSessionLocal
from database.models.jobs import Job
from database.models.posts import Post
from database.models.users import (
    CompanyAdmin,
    Employer,
    JobSeeker,
    SuperAdmin,
    User,
    UserProfile,
    UserRole,
)
from database.security import mask_email

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "bio", "country", "city", "phone", "social_links")
JOB_SEEKER_FIELDS = ("skills", "education", "experience", "job_preferences", "status")

ROLE_PROFILES = {
    UserRole.JOB_SEEKER: JobSeeker,
    UserRole.EMPLOYER: Employer,
    UserRole.COMPANY_ADMIN: CompanyAdmin,
    UserRole.SUPER_ADMIN: SuperAdmin,
}


def serialize_role_profile(user: User) -> Optional[Dict[str, Any]]:
    profile = user.role_profile
    if profile is None:
        return None
    if user.role == UserRole.JOB_SEEKER:
        return {
            "id": profile.id,
            "skills": list(profile.skills or []),
            "education": list(profile.education or []),
            "experience": list(profile.experience or []),
            "job_preferences": dict(profile.job_preferences or {}),
            "status": profile.status.value,
            "has_resume": profile.resume is not None,
            "resume_url": profile.resume_url,
        }
    if user.role == UserRole.EMPLOYER:
        return {
            "id": profile.id,
            "role_type": profile.role_type.value,
            "company_id": profile.company_id,
            "status": profile.status.value,
        }
    if user.role == UserRole.COMPANY_ADMIN:
        return {
            "id": profile.id,
            "company_id": profile.company_id,
            "permissions": list(profile.permissions or []),
            "status": profile.status.value,
        }
    return {
        "id": profile.id,
        "permissions": list(profile.permissions or []),
        "status": profile.status.value,
    }


def serialize_user(user: User) -> Dict[str, Any]:
    profile = user.profile
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "profile": {
            "full_name": profile.full_name,
            "profile_picture": profile.profile_picture,
            "bio": profile.bio,
            "country": profile.country,
            "city": profile.city,
            "phone": profile.phone,
            "social_links": list(profile.social_links or []),
            "is_profile_complete": profile.is_profile_complete,
        } if profile else None,
        "role_profile": serialize_role_profile(user),
        **timestamps(user),
    }


def _token_response(user: User) -> Dict[str, Any]:
    return {
        "access_token": create_access_token(user.id, user.role.value),
        "token_type": "bearer",
        "user": serialize_user(user),
    }


async def register(id_token: str, role: UserRole, full_name: str) -> Dict[str, Any]:
    """
    Create an account for a verified identity.

    Raises:
        AuthenticationError: invalid identity token
        UnauthorizedError: super admin registration by an e-mail not on the
            bootstrap allow-list
        ConflictError: identity or e-mail already registered
    """
    claims = verify_identity_token(id_token)
    if not (full_name or "").strip():
        raise ValidationError("Full name is required")
    if role == UserRole.SUPER_ADMIN and claims.email not in {
        email.lower() for email in settings.super_admin_emails
    }:
        logger.warning(f"Super admin registration refused for {mask_email(claims.email)}")
        raise UnauthorizedError("Unauthorized: Super admin registration is not allowed")

    async with AsyncSessionLocal() as session:
        existing = await session.scalar(
            select(User.id)
            .where(or_(User.auth_id == claims.subject, User.email == claims.email))
            .execution_options(include_deleted=True)
        )
        if existing is not None:
            raise ConflictError("User already registered")

        user = User(auth_id=claims.subject, email=claims.email, role=role)
        user.profile = UserProfile(full_name=full_name.strip(), social_links=[])
        setattr(user, role.value, ROLE_PROFILES[role]())
        session.add(user)
        try:
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            raise ConflictError("User already registered") from e

        user = await load_user(session, user.id)
        logger.info(f"Registered user {user.id} ({mask_email(user.email)}) as {role.value}")
        return _token_response(user)


async def login(id_token: str) -> Dict[str, Any]:
    claims = verify_identity_token(id_token)
    async with AsyncSessionLocal() as session:
        user = await session.scalar(select(User).where(User.auth_id == claims.subject))
        if user is None:
            raise NotFoundError("User not found. Please register first")
        return _token_response(user)


async def get_me(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        return serialize_user(await load_user(session, user_id))


async def update_profile(user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update the shared profile and, for job seekers, the job seeker fields.

    ``is_profile_complete`` is recomputed on every update.
    """
    profile_updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
    seeker_updates = {k: v for k, v in changes.items() if k in JOB_SEEKER_FIELDS}

    if "full_name" in profile_updates and not (profile_updates["full_name"] or "").strip():
        raise ValidationError("Full name cannot be empty")
    if profile_updates.get("phone"):
        ok, error = validate_phone(profile_updates["phone"])
        if not ok:
            raise ValidationError(error)
    if profile_updates.get("social_links"):
        ok, error = validate_social_links(profile_updates["social_links"])
        if not ok:
            raise ValidationError(error)

    async with AsyncSessionLocal() as session:
        user = await load_user(session, user_id)
        if seeker_updates and user.role != UserRole.JOB_SEEKER:
            raise ValidationError("Only job seekers have skills, experience and preferences")

        for key, value in profile_updates.items():
            setattr(user.profile, key, value)
        user.profile.refresh_completeness()
        for key, value in seeker_updates.items():
            setattr(user.job_seeker, key, value)

        await session.commit()
        return serialize_user(user)


async def soft_delete_user(session: AsyncSession, user: User) -> None:
    """
    Flag a user with their profile, role profile, posts and posted jobs.

    A company admin is detached from their company so the company can be
    given a new admin.
    """
    user.soft_delete()
    if user.profile is not None:
        user.profile.soft_delete()
    role_profile = user.role_profile
    if role_profile is not None:
        if user.role == UserRole.COMPANY_ADMIN:
            role_profile.company_id = None
        role_profile.soft_delete()

    posts = await session.execute(select(Post).where(Post.author_id == user.id))
    for post in posts.scalars().all():
        post.soft_delete()
    jobs = await session.execute(select(Job).where(Job.posted_by_id == user.id))
    for job in jobs.scalars().all():
        job.soft_delete()


async def delete_account(user_id: int) -> Dict[str, Any]:
    """Soft-delete the user, the shared profile and the role profile together."""
    async with AsyncSessionLocal() as session:
        user = await load_user(session, user_id)
        await soft_delete_user(session, user)
        await session.commit()

    await invalidate_admin_permissions(user_id)
    logger.info(f"User {user_id} deleted their account")
    return {"message": "Account deleted successfully"}


async def upload_profile_picture(user_id: int, data: bytes, content_type: str) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await load_user(session, user_id)
        url = await get_storage().upload(
            data,
            UploadFolder.PROFILE_PICTURES,
            content_type,
            naming_strategy=NamingStrategy.OWNER,
            owner_id=user.id,
        )
        user.profile.profile_picture = url
        await session.commit()
    return {"profile_picture": url}


async def upload_resume_file(user_id: int, data: bytes, content_type: str) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="upload a resume"
        )
        url = await get_storage().upload(
            data,
            UploadFolder.RESUMES,
            content_type,
            naming_strategy=NamingStrategy.OWNER,
            owner_id=user.id,
        )
        user.job_seeker.resume_url = url
        await session.commit()
    return {"resume_url": url}


def _resume_input(user: User) -> Dict[str, Any]:
    profile, seeker = user.profile, user.job_seeker
    location = ", ".join(part for part in (profile.city, profile.country) if part)
    return {
        "full_name": profile.full_name,
        "bio": profile.bio,
        "location": location,
        "contact_information": {"email": user.email, "phone": profile.phone or ""},
        "social_links": list(profile.social_links or []),
        "education": list(seeker.education or []),
        "experiences": list(seeker.experience or []),
        "projects": list((seeker.job_preferences or {}).get("projects", [])),
        "skills": list(seeker.skills or []),
    }


async def generate_resume(user_id: int) -> Dict[str, Any]:
    """Generate a structured resume from the profile and store it."""
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="generate a resume"
        )
        document = await career.resume_agent.process(_resume_input(user))
        user.job_seeker.resume = document.model_dump()
        await session.commit()
        return {"resume": user.job_seeker.resume}


async def get_resume(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="view a resume"
        )
        seeker = user.job_seeker
        if seeker.resume is None and seeker.resume_url is None:
            raise NotFoundError("Resume not found")
        return {"resume": seeker.resume, "resume_url": seeker.resume_url}


async def update_resume(user_id: int, resume: Dict[str, Any]) -> Dict[str, Any]:
    try:
        document = ResumeDocument.model_validate(resume)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid resume: {e.error_count()} field error(s)") from e

    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="update a resume"
        )
        user.job_seeker.resume = document.model_dump()
        await session.commit()
        return {"resume": user.job_seeker.resume}


async def delete_resume(user_id: int) -> Dict[str, Any]:
    """Remove the structured resume and the uploaded resume file."""
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.JOB_SEEKER, action="delete a resume"
        )
        seeker = user.job_seeker
        if seeker.resume is None and seeker.resume_url is None:
            raise NotFoundError("Resume not found")

        if seeker.resume_url:
            storage = get_storage()
            key = storage.key_from_url(seeker.resume_url)
            if key:
                await storage.delete(key)

        seeker.resume = None
        seeker.resume_url = None
        await session.commit()
    return {"message": "Resume deleted successfully"}
