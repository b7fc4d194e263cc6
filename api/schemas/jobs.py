"""Job and application schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from database.models.applications import ApplicationStatus
from database.models.jobs import Currency, ExperienceLevel, JobStatus, JobType


class JobFields(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    requirements: Optional[list[str]] = None
    skills: Optional[list[str]] = None
    job_type: Optional[JobType] = None
    experience_level: Optional[ExperienceLevel] = None
    country: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    currency: Optional[Currency] = None
    application_deadline: Optional[datetime] = None

    @model_validator(mode="after")
    def check_salary_range(self):
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_min > self.salary_max
        ):
            raise ValueError("Minimum salary cannot exceed maximum salary")
        return self


class JobCreate(JobFields):
    """New job posting; only Draft or Open are accepted."""

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    job_type: JobType
    experience_level: ExperienceLevel
    status: JobStatus = JobStatus.DRAFT


class JobUpdate(JobFields):
    title: Optional[str] = Field(None, min_length=1, max_length=200)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
