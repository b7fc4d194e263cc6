"""
Application lifecycle service functions.

Per (job seeker, job) pair the lifecycle runs from no relation, to a pending
draft, to Applied, then forward through Under Review, Interview and Offered.
Hired and Rejected are terminal. A pending draft holds the ATS score and the
generated cover letter until the seeker applies. Saving a job is independent
of all of this.

Every relationship is a single row (``Application``, ``SavedJob``,
``PendingApplication``, ``Hire``) and every operation commits once, so the
job-side and seeker-side views cannot diverge. Concurrent duplicate inserts
fail on the unique (job, job seeker) constraints and surface as 409.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agents import career
from api.services import notifications as notification_service
from api.services.common import (
    load_user_with_role,
    page_offset,
    paginated,
    user_summary,
)
from api.services.jobs import load_job, serialize_job
from core.errors import (
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from core.utils.datetime import is_past, isoformat
from database.engine import AsyncSessionLocal
from database.models.applications import (
    Application,
    ApplicationStatus,
    Hire,
    PendingApplication,
    SavedJob,
)
from database.models.companies import Company
from database.models.jobs import Job, JobStatus
from database.models.notifications import NotificationType
from database.models.users import JobSeeker, JobSeekerStatus, User, UserRole

logger = logging.getLogger(__name__)

# Forward order of the review pipeline; HIRED is only reached through hire_candidate
PIPELINE = [
    ApplicationStatus.APPLIED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.INTERVIEW,
    ApplicationStatus.OFFERED,
]
TERMINAL_STATUSES = {ApplicationStatus.HIRED, ApplicationStatus.REJECTED}


def serialize_application(application: Application) -> Dict[str, Any]:
    return {
        "id": application.id,
        "job_id": application.job_id,
        "job_seeker_id": application.job_seeker_id,
        "status": application.status.value,
        "cover_letter": application.cover_letter,
        "ats_score": application.ats_score,
        "applied_at": isoformat(application.applied_at),
    }


def serialize_pending(pending: PendingApplication) -> Dict[str, Any]:
    return {
        "job_id": pending.job_id,
        "ats_score": pending.ats_score,
        "improvement_suggestions": pending.improvement_suggestions,
        "cover_letter": pending.cover_letter,
        "updated_at": isoformat(pending.updated_at),
    }


def can_transition(current: ApplicationStatus, new: ApplicationStatus) -> bool:
    """Forward moves along the pipeline, or rejection from any non-terminal state."""
    if current in TERMINAL_STATUSES:
        return False
    if new == ApplicationStatus.REJECTED:
        return True
    if new not in PIPELINE:
        return False
    return PIPELINE.index(new) > PIPELINE.index(current)


async def _load_seeker(session: AsyncSession, user_id: int, action: str) -> JobSeeker:
    user = await load_user_with_role(session, user_id, UserRole.JOB_SEEKER, action=action)
    return user.job_seeker


async def _pending_for(
    session: AsyncSession, job_id: int, job_seeker_id: int
) -> Optional[PendingApplication]:
    return await session.scalar(
        select(PendingApplication).where(
            PendingApplication.job_id == job_id,
            PendingApplication.job_seeker_id == job_seeker_id,
        )
    )


async def _upsert_pending(
    session: AsyncSession, job_id: int, job_seeker_id: int, **fields
) -> PendingApplication:
    """One draft per (job, seeker); later values overwrite earlier ones."""
    pending = await _pending_for(session, job_id, job_seeker_id)
    if pending is None:
        pending = PendingApplication(job_id=job_id, job_seeker_id=job_seeker_id)
        session.add(pending)
    for key, value in fields.items():
        setattr(pending, key, value)
    return pending


async def _saved_for(
    session: AsyncSession, job_id: int, job_seeker_id: int
) -> Optional[SavedJob]:
    return await session.scalar(
        select(SavedJob).where(SavedJob.job_id == job_id, SavedJob.job_seeker_id == job_seeker_id)
    )


def _require_resume(seeker: JobSeeker) -> Dict[str, Any]:
    if not seeker.resume:
        raise NotFoundError("Resume not found. Generate or upload a resume first")
    return seeker.resume


async def get_ats_score_and_suggestions(user_id: int, job_id: int) -> Dict[str, Any]:
    """
    Score the caller's resume against a job and stage the result.

    The score and suggestions are stored on the pending application for the
    job, replacing any earlier draft values.
    """
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "request an ATS score")
        resume = _require_resume(seeker)
        job = await load_job(session, job_id)

        result = await career.ats_scoring_agent.process(
            {"resume": resume, "job": serialize_job(job)}
        )

        pending = await _upsert_pending(
            session,
            job.id,
            seeker.id,
            ats_score=result.ats_score,
            improvement_suggestions=result.improvement_suggestions,
        )
        await session.commit()

        return {
            "job_id": job.id,
            "ats_score": pending.ats_score,
            "improvement_suggestions": pending.improvement_suggestions,
        }


async def generate_cover_letter_for_job(user_id: int, job_id: int) -> Dict[str, Any]:
    """Generate a cover letter for a job and stage it on the pending application."""
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "generate a cover letter")
        resume = _require_resume(seeker)
        job = await load_job(session, job_id)

        company_name = None
        if job.company_id is not None:
            company_name = await session.scalar(
                select(Company.name).where(Company.id == job.company_id)
            )

        cover_letter = await career.cover_letter_agent.process(
            {"resume": resume, "job": serialize_job(job), "company_name": company_name}
        )
        if not cover_letter:
            raise ValidationError("Generated cover letter is empty")

        await _upsert_pending(session, job.id, seeker.id, cover_letter=cover_letter)
        await session.commit()

        return {"job_id": job.id, "cover_letter": cover_letter}


async def apply_for_job(user_id: int, job_id: int) -> Dict[str, Any]:
    """
    Apply to a job, or withdraw an existing application.

    Applying requires an open job whose deadline has not passed and a staged
    cover letter. The staged draft becomes the application and is removed.
    Withdrawing turns the application back into a draft, so applying again
    works without regenerating the letter. An application that led to a hire
    cannot be withdrawn.
    """
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "apply for jobs")
        job = await load_job(session, job_id)

        existing = await session.scalar(
            select(Application).where(
                Application.job_id == job.id, Application.job_seeker_id == seeker.id
            )
        )

        if existing is not None:
            if existing.status == ApplicationStatus.HIRED:
                raise ConflictError("Cannot withdraw an application that resulted in a hire")
            await _upsert_pending(
                session,
                job.id,
                seeker.id,
                cover_letter=existing.cover_letter,
                ats_score=existing.ats_score,
            )
            await session.delete(existing)
            await session.commit()
            logger.info(f"Job seeker {seeker.id} withdrew from job {job.id}")
            return {"message": "Application canceled successfully", "applied": False}

        if job.status != JobStatus.OPEN:
            raise ValidationError("This job is not open for applications")
        if job.application_deadline is not None and is_past(job.application_deadline):
            raise ValidationError("The application deadline for this job has passed")

        pending = await _pending_for(session, job.id, seeker.id)
        if pending is None or not (pending.cover_letter or "").strip():
            raise ValidationError("You must generate a cover letter before applying")

        application = Application(
            job_id=job.id,
            job_seeker_id=seeker.id,
            status=ApplicationStatus.APPLIED,
            cover_letter=pending.cover_letter,
            ats_score=pending.ats_score,
            resume_snapshot=seeker.resume,
        )
        session.add(application)
        await session.delete(pending)

        applicant_name = (await session.get(User, user_id)).full_name or "A candidate"
        notification = notification_service.stage_notification(
            session,
            job.posted_by_id,
            NotificationType.APPLICATION_UPDATE,
            f"{applicant_name} applied for {job.title}",
            related_id=job.id,
        )
        await session.commit()

    notification_service.publish([notification])
    logger.info(f"Job seeker {seeker.id} applied to job {job.id}")
    return {
        "message": "Application submitted successfully",
        "applied": True,
        "application": serialize_application(application),
    }


async def save_job(user_id: int, job_id: int) -> Dict[str, Any]:
    """Bookmark a job, or remove the bookmark if it is already saved."""
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "save jobs")
        job = await load_job(session, job_id)

        existing = await _saved_for(session, job.id, seeker.id)
        if existing is not None:
            await session.delete(existing)
            await session.commit()
            return {"message": "Job unsaved successfully", "saved": False}

        session.add(SavedJob(job_id=job.id, job_seeker_id=seeker.id))
        await session.commit()
        return {"message": "Job saved successfully", "saved": True}


async def _load_posted_job(session: AsyncSession, user_id: int, job_id: int) -> Job:
    job = await load_job(session, job_id)
    if job.posted_by_id != user_id:
        raise UnauthorizedError("Unauthorized: You did not post this job")
    return job


async def hire_candidate(user_id: int, job_id: int, job_seeker_id: int) -> Dict[str, Any]:
    """
    Hire an applicant for a job the caller posted.

    Marks the application Hired, records the hire against the employer and
    sets the seeker's status to Hired. There is no un-hire.
    """
    async with AsyncSessionLocal() as session:
        user = await load_user_with_role(
            session, user_id, UserRole.EMPLOYER, action="hire candidates"
        )
        employer = user.employer
        job = await _load_posted_job(session, user_id, job_id)

        application = await session.scalar(
            select(Application).where(
                Application.job_id == job.id, Application.job_seeker_id == job_seeker_id
            )
        )
        if application is None:
            raise ValidationError("This job seeker has not applied for the job")

        hire = await session.scalar(
            select(Hire).where(Hire.job_id == job.id, Hire.job_seeker_id == job_seeker_id)
        )
        if hire is not None:
            if application.status != ApplicationStatus.HIRED:
                logger.error(
                    f"Hire row without hired application: job {job.id}, seeker {job_seeker_id}"
                )
                raise InconsistentStateError()
            raise ConflictError("This candidate has already been hired")
        if application.status == ApplicationStatus.HIRED:
            logger.error(
                f"Hired application without hire row: job {job.id}, seeker {job_seeker_id}"
            )
            raise InconsistentStateError()
        if application.status == ApplicationStatus.REJECTED:
            raise ValidationError("Cannot hire a rejected candidate")

        seeker = await session.scalar(select(JobSeeker).where(JobSeeker.id == job_seeker_id))
        if seeker is None:
            raise NotFoundError("Job seeker not found")

        application.status = ApplicationStatus.HIRED
        seeker.status = JobSeekerStatus.HIRED
        hire = Hire(job_id=job.id, job_seeker_id=seeker.id, employer_id=employer.id)
        session.add(hire)
        notification = notification_service.stage_notification(
            session,
            seeker.user_id,
            NotificationType.JOB_OFFER,
            f"You have been hired for the job: {job.title}",
            related_id=job.id,
        )
        await session.commit()

    notification_service.publish([notification])
    logger.info(f"Employer {employer.id} hired job seeker {job_seeker_id} for job {job_id}")
    return {
        "message": "Candidate hired successfully",
        "job_id": job_id,
        "job_seeker_id": job_seeker_id,
        "hired_at": isoformat(hire.hired_at),
    }


async def update_application_status(
    user_id: int, application_id: int, status: ApplicationStatus
) -> Dict[str, Any]:
    """Move an application along the review pipeline, or reject it."""
    if status == ApplicationStatus.HIRED:
        raise ValidationError("Use the hire endpoint to hire a candidate")

    async with AsyncSessionLocal() as session:
        application = await session.scalar(
            select(Application).where(Application.id == application_id)
        )
        if application is None:
            raise NotFoundError("Application not found")
        job = await _load_posted_job(session, user_id, application.job_id)

        if not can_transition(application.status, status):
            raise ConflictError(
                f"Cannot change application status from {application.status.value} to {status.value}"
            )

        application.status = status
        seeker = await session.scalar(
            select(JobSeeker).where(JobSeeker.id == application.job_seeker_id)
        )
        notification = notification_service.stage_notification(
            session,
            seeker.user_id,
            NotificationType.APPLICATION_UPDATE,
            f"Your application for {job.title} is now {status.value.replace('_', ' ')}",
            related_id=job.id,
        )
        await session.commit()

    notification_service.publish([notification])
    return serialize_application(application)


async def list_applicants(
    user_id: int, job_id: int, page: int = 1, page_size: int = 20
) -> Dict[str, Any]:
    """Applicants of a job the caller posted, best ATS score first."""
    async with AsyncSessionLocal() as session:
        job = await _load_posted_job(session, user_id, job_id)

        # deleted accounts drop out of both queries through the joins
        total = await session.scalar(
            select(func.count(Application.id))
            .join(JobSeeker, JobSeeker.id == Application.job_seeker_id)
            .join(User, User.id == JobSeeker.user_id)
            .where(Application.job_id == job.id)
        ) or 0
        result = await session.execute(
            select(Application, User)
            .join(JobSeeker, JobSeeker.id == Application.job_seeker_id)
            .join(User, User.id == JobSeeker.user_id)
            .where(Application.job_id == job.id)
            .order_by(Application.ats_score.desc().nulls_last(), Application.applied_at.asc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [
            {
                **serialize_application(application),
                "resume_snapshot": application.resume_snapshot,
                "applicant": user_summary(user),
            }
            for application, user in result.all()
        ]

    return paginated(items, total, page, page_size)


async def get_saved_jobs(user_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "view saved jobs")
        conditions = [SavedJob.job_seeker_id == seeker.id]

        total = await session.scalar(
            select(func.count(SavedJob.id)).join(Job, Job.id == SavedJob.job_id).where(*conditions)
        ) or 0
        result = await session.execute(
            select(SavedJob, Job)
            .join(Job, Job.id == SavedJob.job_id)
            .where(*conditions)
            .order_by(SavedJob.created_at.desc(), SavedJob.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [
            {"saved_at": isoformat(saved.created_at), "job": serialize_job(job)}
            for saved, job in result.all()
        ]

    return paginated(items, total, page, page_size)


async def get_applied_jobs(user_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "view applied jobs")
        conditions = [Application.job_seeker_id == seeker.id]

        total = await session.scalar(
            select(func.count(Application.id))
            .join(Job, Job.id == Application.job_id)
            .where(*conditions)
        ) or 0
        result = await session.execute(
            select(Application, Job)
            .join(Job, Job.id == Application.job_id)
            .where(*conditions)
            .order_by(Application.applied_at.desc(), Application.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [
            {**serialize_application(application), "job": serialize_job(job)}
            for application, job in result.all()
        ]

    return paginated(items, total, page, page_size)


async def get_pending_applications(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        seeker = await _load_seeker(session, user_id, "view pending applications")
        result = await session.execute(
            select(PendingApplication, Job)
            .join(Job, Job.id == PendingApplication.job_id)
            .where(PendingApplication.job_seeker_id == seeker.id)
            .order_by(PendingApplication.updated_at.desc())
        )
        items = [
            {**serialize_pending(pending), "job": serialize_job(job)}
            for pending, job in result.all()
        ]

    return {"items": items, "total": len(items)}
