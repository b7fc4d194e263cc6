"""
Tests for job posting, search and status changes.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from api.services import jobs as job_service
from api.services import notifications as notification_service
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from database.engine import AsyncSessionLocal
from database.models.applications import Application
from database.models.companies import CompanyFollow
from database.models.jobs import ExperienceLevel, Job, JobStatus, JobType
from database.models.users import EmployerStatus, JobSeeker, UserRole
from tests.factories import add_to_company, create_company, create_job, create_user

pytestmark = pytest.mark.usefixtures("db")

NEW_JOB = {
    "title": "Data Engineer",
    "description": "Pipelines all day",
    "job_type": JobType.FULL_TIME,
    "experience_level": ExperienceLevel.SENIOR,
    "country": "UK",
    "city": "London",
    "salary_min": 50000,
    "salary_max": 80000,
}


@pytest.fixture
def fan_out():
    with patch.object(
        notification_service, "send_notifications_to_users", new=AsyncMock(return_value=2)
    ) as mock:
        yield mock


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_defaults_to_draft(self):
        employer = await create_user(UserRole.EMPLOYER)

        job = await job_service.create_job(employer.id, NEW_JOB)

        assert job["status"] == "draft"
        assert job["posted_by_id"] == employer.id
        assert job["company_id"] is None
        assert job["currency"] == "USD"

    @pytest.mark.asyncio
    async def test_closed_is_not_a_starting_status(self):
        employer = await create_user(UserRole.EMPLOYER)

        with pytest.raises(ValidationError):
            await job_service.create_job(employer.id, {**NEW_JOB, "status": "closed"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [
        {"salary_min": 90000, "salary_max": 10000},
        {"application_deadline": datetime.now(timezone.utc) - timedelta(days=1)},
    ])
    async def test_invalid_values(self, changes):
        employer = await create_user(UserRole.EMPLOYER)

        with pytest.raises(ValidationError):
            await job_service.create_job(employer.id, {**NEW_JOB, **changes})

    @pytest.mark.asyncio
    async def test_seekers_cannot_post(self):
        seeker = await create_user(UserRole.JOB_SEEKER)

        with pytest.raises(UnauthorizedError):
            await job_service.create_job(seeker.id, NEW_JOB)

    @pytest.mark.asyncio
    async def test_inactive_employer_cannot_post(self):
        employer = await create_user(UserRole.EMPLOYER, status=EmployerStatus.FIRED)

        with pytest.raises(UnauthorizedError, match="not active"):
            await job_service.create_job(employer.id, NEW_JOB)

    @pytest.mark.asyncio
    async def test_company_admin_needs_company(self):
        admin = await create_user(UserRole.COMPANY_ADMIN)

        with pytest.raises(ValidationError, match="company"):
            await job_service.create_job(admin.id, NEW_JOB)

    @pytest.mark.asyncio
    async def test_open_company_job_notifies_followers(self, fan_out):
        employer = await create_user(UserRole.EMPLOYER)
        follower = await create_user()
        company = await create_company()
        await add_to_company(employer, company)
        async with AsyncSessionLocal() as session:
            session.add(CompanyFollow(user_id=follower.id, company_id=company.id))
            await session.commit()

        job = await job_service.create_job(employer.id, {**NEW_JOB, "status": "open"})

        assert job["company_id"] == company.id
        fan_out.assert_awaited_once()
        assert fan_out.await_args.args[0] == [follower.id]
        assert fan_out.await_args.args[2] == "New job posted: Data Engineer"

    @pytest.mark.asyncio
    async def test_draft_company_job_is_quiet(self, fan_out):
        admin = await create_user(UserRole.COMPANY_ADMIN)
        company = await create_company(admin=admin)
        follower = await create_user()
        async with AsyncSessionLocal() as session:
            session.add(CompanyFollow(user_id=follower.id, company_id=company.id))
            await session.commit()

        job = await job_service.create_job(admin.id, NEW_JOB)

        assert job["company_id"] == company.id
        fan_out.assert_not_awaited()


class TestManageJob:
    @pytest.mark.asyncio
    async def test_poster_updates(self):
        employer = await create_user(UserRole.EMPLOYER)
        job = await create_job(employer)

        updated = await job_service.update_job(
            employer.id, job.id, {"title": "Staff Engineer", "status": "closed"}
        )

        assert updated["title"] == "Staff Engineer"
        assert updated["status"] == "open"

    @pytest.mark.asyncio
    async def test_company_admin_manages_company_jobs(self):
        admin = await create_user(UserRole.COMPANY_ADMIN)
        company = await create_company(admin=admin)
        employer = await create_user(UserRole.EMPLOYER)
        job = await create_job(employer, company=company)

        updated = await job_service.update_job(admin.id, job.id, {"city": "Leeds"})

        assert updated["city"] == "Leeds"

    @pytest.mark.asyncio
    async def test_strangers_cannot_manage(self):
        employer = await create_user(UserRole.EMPLOYER)
        other = await create_user(UserRole.EMPLOYER)
        job = await create_job(employer)

        with pytest.raises(UnauthorizedError):
            await job_service.update_job(other.id, job.id, {"title": "mine now"})
        with pytest.raises(UnauthorizedError):
            await job_service.delete_job(other.id, job.id)

    @pytest.mark.asyncio
    async def test_delete(self):
        employer = await create_user(UserRole.EMPLOYER)
        job = await create_job(employer)

        result = await job_service.delete_job(employer.id, job.id)

        assert result["message"] == "Job deleted successfully"
        with pytest.raises(NotFoundError):
            await job_service.get_job(job.id)

    @pytest.mark.asyncio
    async def test_get_job_details(self):
        employer = await create_user(UserRole.EMPLOYER)
        company = await create_company(name="Acme")
        job = await create_job(employer, company=company)

        details = await job_service.get_job(job.id)

        assert details["applicant_count"] == 0
        assert details["company"]["name"] == "Acme"


class TestToggleStatus:
    @pytest.mark.asyncio
    async def test_cycle(self):
        employer = await create_user(UserRole.EMPLOYER)
        job = await create_job(employer, status=JobStatus.DRAFT)

        statuses = [
            (await job_service.toggle_job_status(employer.id, job.id))["status"]
            for _ in range(3)
        ]

        assert statuses == ["open", "closed", "open"]

    @pytest.mark.asyncio
    async def test_applicants_are_notified(self, fan_out):
        employer = await create_user(UserRole.EMPLOYER)
        seeker = await create_user(UserRole.JOB_SEEKER)
        job = await create_job(employer)
        async with AsyncSessionLocal() as session:
            session.add(Application(
                job_id=job.id, job_seeker_id=seeker.job_seeker.id, cover_letter="Hi"
            ))
            await session.commit()

        result = await job_service.toggle_job_status(employer.id, job.id)

        assert result == {"id": job.id, "status": "closed", "notified": 2}
        assert fan_out.await_args.args[0] == [seeker.id]

    @pytest.mark.asyncio
    async def test_expired_job_cannot_reopen(self):
        employer = await create_user(UserRole.EMPLOYER)
        job = await create_job(
            employer,
            status=JobStatus.CLOSED,
            application_deadline=datetime.now(timezone.utc) - timedelta(days=1),
        )

        with pytest.raises(ValidationError, match="deadline"):
            await job_service.toggle_job_status(employer.id, job.id)


class TestSearch:
    @pytest.mark.asyncio
    async def test_filters(self):
        employer = await create_user(UserRole.EMPLOYER)
        await create_job(employer, title="Python Developer", country="UK", salary_max=70000)
        await create_job(
            employer,
            title="Go Developer",
            country="US",
            job_type=JobType.CONTRACT,
            salary_max=40000,
        )
        await create_job(employer, title="Python Draft", status=JobStatus.DRAFT)

        def titles(page):
            return sorted(item["title"] for item in page["items"])

        assert titles(await job_service.search_jobs()) == ["Go Developer", "Python Developer"]
        assert titles(await job_service.search_jobs(keyword="python")) == ["Python Developer"]
        assert titles(await job_service.search_jobs(country="us")) == ["Go Developer"]
        assert titles(await job_service.search_jobs(job_type=JobType.CONTRACT)) == ["Go Developer"]
        assert titles(await job_service.search_jobs(min_salary=50000)) == ["Python Developer"]

    @pytest.mark.asyncio
    async def test_pagination(self):
        employer = await create_user(UserRole.EMPLOYER)
        for _ in range(3):
            await create_job(employer)

        page = await job_service.search_jobs(page=2, page_size=2)

        assert page["total"] == 3
        assert page["total_pages"] == 2
        assert len(page["items"]) == 1

    @pytest.mark.asyncio
    async def test_company_jobs(self):
        employer = await create_user(UserRole.EMPLOYER)
        company = await create_company()
        await create_job(employer, company=company)
        await create_job(employer, company=company, status=JobStatus.DRAFT)
        await create_job(employer)

        everything = await job_service.list_company_jobs(company.id)
        drafts = await job_service.list_company_jobs(company.id, status=JobStatus.DRAFT)

        assert everything["total"] == 2
        assert drafts["total"] == 1
        with pytest.raises(NotFoundError):
            await job_service.list_company_jobs(999)


class TestRecommendations:
    def test_match_score_adds_up_each_signal(self):
        job = Job(
            skills=["Python", "SQL"],
            city="London",
            job_type=JobType.FULL_TIME,
            experience_level=ExperienceLevel.MID,
            salary_max=90000,
        )
        seeker = JobSeeker(
            skills=["python", "go"],
            job_preferences={
                "location": "london",
                "job_types": ["full_time"],
                "salary_expectation": 80000,
            },
            experience=[{"start_date": "2020-01-01", "end_date": "2023-06-01"}],
        )

        assert job_service.match_score(job, seeker) == 80

    def test_job_without_skills_scores_on_the_rest(self):
        job = Job(skills=[], city=None, job_type=JobType.CONTRACT,
                  experience_level=ExperienceLevel.ENTRY, salary_max=None)
        seeker = JobSeeker(skills=["python"], job_preferences={"job_types": "contract"},
                           experience=[])

        assert job_service.match_score(job, seeker) == 30

    @pytest.mark.parametrize("years,level", [
        (0, ExperienceLevel.ENTRY),
        (2, ExperienceLevel.ENTRY),
        (4.5, ExperienceLevel.MID),
        (7, ExperienceLevel.SENIOR),
    ])
    def test_level_for_years(self, years, level):
        assert job_service.level_for_years(years) == level

    def test_experience_years_skips_bad_dates(self):
        entries = [
            {"start_date": "2019-01-01", "end_date": "2021-01-01"},
            {"start_date": "not a date"},
            {"title": "No dates"},
        ]

        assert 1.99 < job_service.experience_years(entries) < 2.01

    @pytest.mark.asyncio
    async def test_ranked_above_the_cutoff(self):
        employer = await create_user(UserRole.EMPLOYER)
        seeker = await create_user(
            UserRole.JOB_SEEKER,
            skills=["python", "sql"],
            job_preferences={"location": "London", "job_types": ["full_time"]},
            experience=[],
        )
        best = await create_job(employer, skills=["python", "sql"], city="London")
        decent = await create_job(employer, skills=["python"], city="Paris")
        await create_job(employer, skills=["python", "go"], city="London",
                         job_type=JobType.PART_TIME)
        await create_job(employer, status=JobStatus.CLOSED, skills=["python", "sql"],
                         city="London")

        result = await job_service.get_job_recommendations(seeker.id)

        assert [(item["id"], item["match_score"]) for item in result["items"]] == [
            (best.id, 80),
            (decent.id, 60),
        ]
        assert result["total"] == 2

    @pytest.mark.asyncio
    async def test_only_job_seekers(self):
        employer = await create_user(UserRole.EMPLOYER)

        with pytest.raises(UnauthorizedError):
            await job_service.get_job_recommendations(employer.id)
