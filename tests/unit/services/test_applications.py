"""
Tests for the application lifecycle: drafts, applying, hiring and the
review pipeline.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from agents.career import ATSResult
from api.services import applications as application_service
from api.services import notifications as notification_service
from api.services import users as user_service
from api.services.applications import can_transition
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from database.engine import AsyncSessionLocal
from database.models.applications import ApplicationStatus, SavedJob
from database.models.jobs import JobStatus
from database.models.users import UserRole
from tests.factories import SAMPLE_RESUME, create_job, create_user

pytestmark = pytest.mark.usefixtures("db")


@pytest.fixture
def agents():
    """Patch both career agents used by the draft steps."""
    ats = AsyncMock(return_value=ATSResult(ats_score=72, improvement_suggestions="Add metrics"))
    letter = AsyncMock(return_value="Dear team, I build APIs.")
    with patch("api.services.applications.career.ats_scoring_agent.process", new=ats), \
            patch("api.services.applications.career.cover_letter_agent.process", new=letter):
        yield ats, letter


async def seeker_and_job(**job_fields):
    employer = await create_user(UserRole.EMPLOYER, full_name="Grace Hopper")
    seeker = await create_user(UserRole.JOB_SEEKER, full_name="Ada Lovelace", resume=SAMPLE_RESUME)
    job = await create_job(employer, **job_fields)
    return employer, seeker, job


async def applied(agents, **job_fields):
    employer, seeker, job = await seeker_and_job(**job_fields)
    await application_service.generate_cover_letter_for_job(seeker.id, job.id)
    result = await application_service.apply_for_job(seeker.id, job.id)
    return employer, seeker, job, result["application"]


class TestTransitions:
    @pytest.mark.parametrize("current,new,allowed", [
        (ApplicationStatus.APPLIED, ApplicationStatus.UNDER_REVIEW, True),
        (ApplicationStatus.APPLIED, ApplicationStatus.OFFERED, True),
        (ApplicationStatus.INTERVIEW, ApplicationStatus.UNDER_REVIEW, False),
        (ApplicationStatus.OFFERED, ApplicationStatus.REJECTED, True),
        (ApplicationStatus.REJECTED, ApplicationStatus.UNDER_REVIEW, False),
        (ApplicationStatus.HIRED, ApplicationStatus.REJECTED, False),
        (ApplicationStatus.APPLIED, ApplicationStatus.APPLIED, False),
    ])
    def test_can_transition(self, current, new, allowed):
        assert can_transition(current, new) is allowed


class TestDrafts:
    @pytest.mark.asyncio
    async def test_ats_score_is_staged(self, agents):
        _, seeker, job = await seeker_and_job()

        result = await application_service.get_ats_score_and_suggestions(seeker.id, job.id)

        assert result == {"job_id": job.id, "ats_score": 72, "improvement_suggestions": "Add metrics"}
        payload = agents[0].await_args.args[0]
        assert payload["resume"]["full_name"] == "Ada Lovelace"
        assert payload["job"]["title"] == "Backend Engineer"

    @pytest.mark.asyncio
    async def test_score_and_letter_share_one_draft(self, agents):
        _, seeker, job = await seeker_and_job()

        await application_service.get_ats_score_and_suggestions(seeker.id, job.id)
        await application_service.generate_cover_letter_for_job(seeker.id, job.id)

        pending = await application_service.get_pending_applications(seeker.id)
        assert pending["total"] == 1
        draft = pending["items"][0]
        assert draft["ats_score"] == 72
        assert draft["cover_letter"] == "Dear team, I build APIs."
        assert draft["job"]["id"] == job.id

    @pytest.mark.asyncio
    async def test_resume_required(self, agents):
        employer = await create_user(UserRole.EMPLOYER)
        seeker = await create_user(UserRole.JOB_SEEKER)
        job = await create_job(employer)

        with pytest.raises(NotFoundError, match="Resume not found"):
            await application_service.get_ats_score_and_suggestions(seeker.id, job.id)
        agents[0].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_seekers(self, agents):
        employer, _, job = await seeker_and_job()

        with pytest.raises(UnauthorizedError):
            await application_service.generate_cover_letter_for_job(employer.id, job.id)


class TestApply:
    @pytest.mark.asyncio
    async def test_cover_letter_required(self):
        _, seeker, job = await seeker_and_job()

        with pytest.raises(ValidationError, match="generate a cover letter"):
            await application_service.apply_for_job(seeker.id, job.id)

    @pytest.mark.asyncio
    async def test_apply_consumes_draft_and_notifies_poster(self, agents):
        with patch.object(notification_service, "schedule_push") as push:
            employer, seeker, job, application = await applied(agents)

        assert application["status"] == "applied"
        assert application["cover_letter"] == "Dear team, I build APIs."
        assert (await application_service.get_pending_applications(seeker.id))["total"] == 0
        user_id, event, payload = push.call_args.args
        assert user_id == employer.id
        assert event == "notification"
        assert payload["message"] == "Ada Lovelace applied for Backend Engineer"

    @pytest.mark.asyncio
    async def test_applying_again_withdraws(self, agents):
        _, seeker, job, _ = await applied(agents)

        result = await application_service.apply_for_job(seeker.id, job.id)

        assert result["applied"] is False
        assert (await application_service.get_applied_jobs(seeker.id))["total"] == 0

    @pytest.mark.asyncio
    async def test_withdraw_then_apply_again(self, agents):
        _, seeker, job, first = await applied(agents)

        withdrawn = await application_service.apply_for_job(seeker.id, job.id)
        drafts = await application_service.get_pending_applications(seeker.id)
        again = await application_service.apply_for_job(seeker.id, job.id)

        assert withdrawn["applied"] is False
        assert drafts["items"][0]["cover_letter"] == first["cover_letter"]
        assert again["applied"] is True
        assert again["application"]["cover_letter"] == "Dear team, I build APIs."
        assert agents[1].await_count == 1
        assert (await application_service.get_pending_applications(seeker.id))["total"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job_fields,message", [
        ({"status": JobStatus.CLOSED}, "not open"),
        ({"status": JobStatus.DRAFT}, "not open"),
        (
            {"application_deadline": datetime.now(timezone.utc) - timedelta(days=1)},
            "deadline",
        ),
    ])
    async def test_job_must_accept_applications(self, agents, job_fields, message):
        _, seeker, job = await seeker_and_job(**job_fields)
        await application_service.generate_cover_letter_for_job(seeker.id, job.id)

        with pytest.raises(ValidationError, match=message):
            await application_service.apply_for_job(seeker.id, job.id)

    @pytest.mark.asyncio
    async def test_applied_jobs_listing(self, agents):
        _, seeker, job, _ = await applied(agents)

        result = await application_service.get_applied_jobs(seeker.id)

        assert result["total"] == 1
        assert result["items"][0]["job"]["id"] == job.id


class TestSaveJob:
    @pytest.mark.asyncio
    async def test_toggle(self):
        _, seeker, job = await seeker_and_job()

        first = await application_service.save_job(seeker.id, job.id)
        saved = await application_service.get_saved_jobs(seeker.id)
        second = await application_service.save_job(seeker.id, job.id)

        assert first["saved"] is True
        assert saved["items"][0]["job"]["id"] == job.id
        assert second["saved"] is False
        assert (await application_service.get_saved_jobs(seeker.id))["total"] == 0

    @pytest.mark.asyncio
    async def test_duplicate_rows_are_rejected(self):
        _, seeker, job = await seeker_and_job()

        async with AsyncSessionLocal() as session:
            session.add(SavedJob(job_id=job.id, job_seeker_id=seeker.job_seeker.id))
            await session.commit()
            session.add(SavedJob(job_id=job.id, job_seeker_id=seeker.job_seeker.id))
            with pytest.raises(IntegrityError):
                await session.commit()

    @pytest.mark.asyncio
    async def test_interleaved_saves_lose_on_the_unique_constraint(self):
        _, seeker, job = await seeker_and_job()
        await application_service.save_job(seeker.id, job.id)

        # the second request read before the first committed
        with patch(
            "api.services.applications._saved_for", new=AsyncMock(return_value=None)
        ), pytest.raises(IntegrityError):
            await application_service.save_job(seeker.id, job.id)

        assert (await application_service.get_saved_jobs(seeker.id))["total"] == 1


class TestHire:
    @pytest.mark.asyncio
    async def test_hire(self, agents):
        employer, seeker, job, _ = await applied(agents)

        result = await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

        assert result["job_seeker_id"] == seeker.job_seeker.id
        assert result["hired_at"] is not None
        applicants = await application_service.list_applicants(employer.id, job.id)
        assert applicants["items"][0]["status"] == "hired"

    @pytest.mark.asyncio
    async def test_second_hire_conflicts(self, agents):
        employer, seeker, job, _ = await applied(agents)
        await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

        with pytest.raises(ConflictError, match="already been hired"):
            await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

    @pytest.mark.asyncio
    async def test_hired_application_cannot_be_withdrawn(self, agents):
        employer, seeker, job, _ = await applied(agents)
        await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

        with pytest.raises(ConflictError):
            await application_service.apply_for_job(seeker.id, job.id)

    @pytest.mark.asyncio
    async def test_must_have_applied(self):
        employer, seeker, job = await seeker_and_job()

        with pytest.raises(ValidationError, match="has not applied"):
            await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

    @pytest.mark.asyncio
    async def test_rejected_candidate(self, agents):
        employer, seeker, job, application = await applied(agents)
        await application_service.update_application_status(
            employer.id, application["id"], ApplicationStatus.REJECTED
        )

        with pytest.raises(ValidationError, match="rejected"):
            await application_service.hire_candidate(employer.id, job.id, seeker.job_seeker.id)

    @pytest.mark.asyncio
    async def test_only_the_poster(self, agents):
        _, seeker, job, _ = await applied(agents)
        other = await create_user(UserRole.EMPLOYER)

        with pytest.raises(UnauthorizedError):
            await application_service.hire_candidate(other.id, job.id, seeker.job_seeker.id)


class TestStatusUpdates:
    @pytest.mark.asyncio
    async def test_forward_move(self, agents):
        employer, _, _, application = await applied(agents)

        result = await application_service.update_application_status(
            employer.id, application["id"], ApplicationStatus.INTERVIEW
        )

        assert result["status"] == "interview"

    @pytest.mark.asyncio
    async def test_backward_move_conflicts(self, agents):
        employer, _, _, application = await applied(agents)
        await application_service.update_application_status(
            employer.id, application["id"], ApplicationStatus.INTERVIEW
        )

        with pytest.raises(ConflictError):
            await application_service.update_application_status(
                employer.id, application["id"], ApplicationStatus.UNDER_REVIEW
            )

    @pytest.mark.asyncio
    async def test_hired_goes_through_hire(self, agents):
        employer, _, _, application = await applied(agents)

        with pytest.raises(ValidationError):
            await application_service.update_application_status(
                employer.id, application["id"], ApplicationStatus.HIRED
            )

    @pytest.mark.asyncio
    async def test_unknown_application(self):
        employer = await create_user(UserRole.EMPLOYER)

        with pytest.raises(NotFoundError):
            await application_service.update_application_status(
                employer.id, 999, ApplicationStatus.REJECTED
            )


class TestApplicants:
    @pytest.mark.asyncio
    async def test_best_score_first(self, agents):
        employer, seeker, job = await seeker_and_job()
        rival = await create_user(UserRole.JOB_SEEKER, full_name="Rival", resume=SAMPLE_RESUME)

        for candidate, score in ((seeker, 40), (rival, 90)):
            agents[0].return_value = ATSResult(ats_score=score, improvement_suggestions="-")
            await application_service.get_ats_score_and_suggestions(candidate.id, job.id)
            await application_service.generate_cover_letter_for_job(candidate.id, job.id)
            await application_service.apply_for_job(candidate.id, job.id)

        result = await application_service.list_applicants(employer.id, job.id)

        assert [item["ats_score"] for item in result["items"]] == [90, 40]
        assert result["items"][0]["applicant"]["full_name"] == "Rival"
        assert result["items"][0]["resume_snapshot"]["full_name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_deleted_accounts_leave_the_count(self, agents):
        employer, seeker, job = await seeker_and_job()
        leaver = await create_user(UserRole.JOB_SEEKER, full_name="Leaver", resume=SAMPLE_RESUME)
        for candidate in (seeker, leaver):
            await application_service.generate_cover_letter_for_job(candidate.id, job.id)
            await application_service.apply_for_job(candidate.id, job.id)

        await user_service.delete_account(leaver.id)
        result = await application_service.list_applicants(employer.id, job.id)

        assert result["total"] == 1
        assert [item["applicant"]["full_name"] for item in result["items"]] == ["Ada Lovelace"]
