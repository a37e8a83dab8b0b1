"""Pydantic schemas for Application API."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from jobboard.schemas.base import CamelModel, DocumentResponse


class ApplicationCreate(CamelModel):
    cover_letter: str | None = Field(None, max_length=5000)
    resume_url: str | None = Field(None, max_length=2048)


class ApplicationStatusUpdate(CamelModel):
    """Review decision for an application."""

    status: Literal["reviewing", "accepted", "rejected"]


class ApplicationResponse(DocumentResponse):
    job: str
    applicant: str
    cover_letter: str | None = None
    resume_url: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationListResponse(CamelModel):
    results: int
    applications: list[ApplicationResponse]
