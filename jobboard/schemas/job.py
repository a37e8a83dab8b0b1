"""Pydantic schemas for Job API."""

from datetime import datetime
from typing import Literal

from pydantic import EmailStr, Field, model_validator

from jobboard.schemas.base import CamelModel, DocumentResponse

JobType = Literal["full-time", "part-time", "internship", "volunteering", "temporary"]
JobStatus = Literal["pending", "approved", "rejected", "closed"]


class Location(CamelModel):
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    remote: bool = False


class SalaryRange(CamelModel):
    """Salary bounds; ``min`` may not exceed ``max`` when both are given."""

    min: float | None = Field(None, ge=0)
    max: float | None = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)

    @model_validator(mode="after")
    def check_bounds(self) -> "SalaryRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("salaryRange.min cannot exceed salaryRange.max")
        return self


class JobBase(CamelModel):
    """Base schema for job data."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=20000)
    company_name: str | None = Field(None, max_length=200)
    requirements: list[str] = []
    skills: list[str] = []
    location: Location | None = None
    salary_range: SalaryRange | None = None
    job_type: JobType = "full-time"
    application_deadline: datetime | None = None
    application_email: EmailStr | None = None


class JobCreate(JobBase):
    """Schema for creating a job posting.

    ``companyName`` defaults to the poster's company when omitted.
    """


class JobUpdate(CamelModel):
    """Schema for updating a job posting."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=20000)
    company_name: str | None = Field(None, max_length=200)
    requirements: list[str] | None = None
    skills: list[str] | None = None
    location: Location | None = None
    salary_range: SalaryRange | None = None
    job_type: JobType | None = None
    application_deadline: datetime | None = None
    application_email: EmailStr | None = None


class JobStatusUpdate(CamelModel):
    status: JobStatus


class JobResponse(DocumentResponse):
    """Schema for job response.

    Everything except ``id`` is optional because listings honour the
    ``fields`` projection.
    """

    title: str | None = None
    description: str | None = None
    company_name: str | None = None
    posted_by: str | None = None
    requirements: list[str] | None = None
    skills: list[str] | None = None
    location: Location | None = None
    salary_range: SalaryRange | None = None
    job_type: str | None = None
    status: str | None = None
    application_deadline: datetime | None = None
    application_email: str | None = None
    views_count: int | None = None
    application_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobListResponse(CamelModel):
    """Schema for paginated job listings."""

    results: int = Field(description="Number of jobs on this page")
    total: int = Field(description="Number of jobs matching the query")
    page: int
    limit: int
    jobs: list[JobResponse]


class JobDashboardStats(CamelModel):
    total_jobs: int
    pending_jobs: int
    active_jobs: int
    by_status: dict[str, int]
    total_applications: int = Field(description="Active applications across all postings")


class JobDashboardResponse(CamelModel):
    """An employer's postings in every status with summary counts."""

    stats: JobDashboardStats
    jobs: list[JobResponse]
