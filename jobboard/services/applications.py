"""Job applications and their review workflow."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from jobboard.core.database import APPLICATIONS, JOBS, Database, DocumentQuery

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("reviewing", "accepted", "rejected")

_NEWEST_FIRST = [("createdAt", -1)]
_HIDDEN = {"__v": 0}


class ApplicationError(Exception):
    """Base application error."""

    pass


class ApplicationNotFoundError(ApplicationError):
    """No application with the given id."""

    pass


class DuplicateApplicationError(ApplicationError):
    """The applicant already has an active application for this job."""

    pass


class JobNotOpenError(ApplicationError):
    """The job does not exist or is not accepting applications."""

    pass


class ApplicationService:
    """Service for job application operations."""

    def __init__(self, database: Database):
        self.applications = database.collection(APPLICATIONS)
        self.jobs = database.collection(JOBS)

    async def get(self, application_id: str) -> dict[str, Any]:
        application = await self.applications.find_one({"_id": application_id}, _HIDDEN)
        if application is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        return application

    async def apply(
        self,
        job_id: str,
        applicant_id: str,
        cover_letter: str | None = None,
        resume_url: str | None = None,
    ) -> dict[str, Any]:
        """Submit an application to an approved job.

        A withdrawn application does not block re-applying.
        """
        job = await self.jobs.find_one({"_id": job_id})
        if job is None or job.get("status") != "approved":
            raise JobNotOpenError(f"Job {job_id} is not accepting applications")

        existing = await self.applications.find_one(
            {"job": job_id, "applicant": applicant_id, "status": {"$ne": "withdrawn"}}
        )
        if existing is not None:
            raise DuplicateApplicationError("You have already applied to this job")

        now = datetime.now(UTC)
        application: dict[str, Any] = {
            "_id": uuid4().hex,
            "job": job_id,
            "applicant": applicant_id,
            "coverLetter": cover_letter,
            "resumeUrl": resume_url,
            "status": "pending",
            "createdAt": now,
            "updatedAt": now,
            "__v": 0,
        }
        await self.applications.insert_one(application)
        await self.jobs.update_one({"_id": job_id}, {"$inc": {"applicationCount": 1}})

        logger.info(
            f"Application {application['_id']} submitted for job {job_id}",
            extra={"application_id": application["_id"], "job_id": job_id},
        )
        return await self.get(application["_id"])

    async def list_for_applicant(self, applicant_id: str) -> list[dict[str, Any]]:
        return await self.applications.find(
            DocumentQuery(filter={"applicant": applicant_id}, sort=_NEWEST_FIRST, projection=_HIDDEN)
        )

    async def list_for_job(self, job_id: str) -> list[dict[str, Any]]:
        return await self.applications.find(
            DocumentQuery(filter={"job": job_id}, sort=_NEWEST_FIRST, projection=_HIDDEN)
        )

    async def list_for_jobs(self, job_ids: list[str]) -> list[dict[str, Any]]:
        """Applications across several jobs, e.g. everything an employer received."""
        if not job_ids:
            return []
        return await self.applications.find(
            DocumentQuery(filter={"job": {"$in": job_ids}}, sort=_NEWEST_FIRST, projection=_HIDDEN)
        )

    async def set_status(self, application_id: str, status: str) -> dict[str, Any]:
        """Move an application through review (reviewing, accepted or rejected)."""
        if status not in REVIEW_STATUSES:
            raise ApplicationError(f"Cannot set application status to {status!r}")

        application = await self.get(application_id)
        if application["status"] == "withdrawn":
            raise ApplicationError("Application has been withdrawn")

        await self.applications.update_one(
            {"_id": application_id},
            {"$set": {"status": status, "updatedAt": datetime.now(UTC)}},
        )
        logger.info(
            f"Application {application_id} moved to {status}",
            extra={"application_id": application_id},
        )
        return await self.get(application_id)

    async def withdraw(self, application_id: str) -> dict[str, Any]:
        application = await self.get(application_id)
        if application["status"] == "withdrawn":
            return application

        await self.applications.update_one(
            {"_id": application_id},
            {"$set": {"status": "withdrawn", "updatedAt": datetime.now(UTC)}},
        )
        await self.jobs.update_one(
            {"_id": application["job"], "applicationCount": {"$gt": 0}},
            {"$inc": {"applicationCount": -1}},
        )
        logger.info(
            f"Application {application_id} withdrawn", extra={"application_id": application_id}
        )
        return await self.get(application_id)
