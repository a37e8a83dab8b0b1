"""Job postings: search, CRUD and moderation."""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from jobboard.core.database import JOBS, Database, DocumentQuery
from jobboard.services.query_features import (
    BOOLEAN,
    DATE,
    DEFAULT_PROJECTION,
    DEFAULT_SORT,
    NUMBER,
    build_query,
)

logger = logging.getLogger(__name__)

JOB_STATUSES = ("pending", "approved", "rejected", "closed")

# Stored types of the non-string job fields, for casting listing filters
JOB_FIELD_TYPES = {
    "salaryRange.min": NUMBER,
    "salaryRange.max": NUMBER,
    "viewsCount": NUMBER,
    "applicationCount": NUMBER,
    "location.remote": BOOLEAN,
    "applicationDeadline": DATE,
    "createdAt": DATE,
    "updatedAt": DATE,
}

DEFAULT_APPLICATION_WINDOW = timedelta(days=30)

# Fields owners may not change through a plain update
_PROTECTED_FIELDS = frozenset(
    {"_id", "postedBy", "status", "viewsCount", "applicationCount", "createdAt", "updatedAt", "__v"}
)


class JobNotFoundError(Exception):
    """No job with the given id."""

    pass


class JobService:
    """Service for job posting operations."""

    def __init__(self, database: Database):
        self.jobs = database.collection(JOBS)

    async def search(
        self,
        params: Mapping[str, Any],
        base_filter: Mapping[str, Any] | None = None,
    ) -> tuple[list[dict[str, Any]], int, int, int]:
        """Run a listing query built from request params.

        Returns ``(jobs, total, page, limit)`` where ``total`` counts every
        match of the composed filter, not just the current page.
        """
        built = build_query(params, base_filter=base_filter, field_types=JOB_FIELD_TYPES)
        jobs = await self.jobs.find(built.query)
        total = await self.jobs.count(built.query.filter)
        return jobs, total, built.page, built.limit

    async def list_posted_by(self, posted_by: str) -> list[dict[str, Any]]:
        """Every posting of one employer, newest first, in every status."""
        return await self.jobs.find(
            DocumentQuery(
                filter={"postedBy": posted_by},
                sort=list(DEFAULT_SORT),
                projection=dict(DEFAULT_PROJECTION),
            )
        )

    async def dashboard(self, posted_by: str) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """An employer's postings plus counts per status and of active applications."""
        jobs = await self.list_posted_by(posted_by)
        by_status = dict.fromkeys(JOB_STATUSES, 0)
        for job in jobs:
            status = job.get("status", "pending")
            by_status[status] = by_status.get(status, 0) + 1
        stats = {
            "totalJobs": len(jobs),
            "pendingJobs": by_status["pending"],
            "activeJobs": by_status["approved"],
            "byStatus": by_status,
            "totalApplications": sum(job.get("applicationCount", 0) for job in jobs),
        }
        return jobs, stats

    async def get(self, job_id: str, count_view: bool = False) -> dict[str, Any]:
        if count_view:
            found = await self.jobs.update_one({"_id": job_id}, {"$inc": {"viewsCount": 1}})
            if not found:
                raise JobNotFoundError(f"Job {job_id} not found")

        job = await self.jobs.find_one({"_id": job_id}, DEFAULT_PROJECTION)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    async def create(self, data: Mapping[str, Any], posted_by: str) -> dict[str, Any]:
        """Store a new posting. New postings always wait for moderation."""
        now = datetime.now(UTC)
        job: dict[str, Any] = {key: value for key, value in data.items() if key not in _PROTECTED_FIELDS}
        job.update(
            {
                "_id": uuid4().hex,
                "postedBy": posted_by,
                "status": "pending",
                "viewsCount": 0,
                "applicationCount": 0,
                "createdAt": now,
                "updatedAt": now,
                "__v": 0,
            }
        )
        if not job.get("applicationDeadline"):
            job["applicationDeadline"] = now + DEFAULT_APPLICATION_WINDOW

        await self.jobs.insert_one(job)
        logger.info(
            f"Job {job['_id']} created by {posted_by}",
            extra={"job_id": job["_id"], "account_id": posted_by},
        )
        return await self.get(job["_id"])

    async def update(self, job_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        updates = {key: value for key, value in changes.items() if key not in _PROTECTED_FIELDS}
        if updates:
            updates["updatedAt"] = datetime.now(UTC)
            if not await self.jobs.update_one({"_id": job_id}, {"$set": updates}):
                raise JobNotFoundError(f"Job {job_id} not found")
        return await self.get(job_id)

    async def set_status(self, job_id: str, status: str) -> dict[str, Any]:
        if status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status: {status}")
        updated = await self.jobs.update_one(
            {"_id": job_id},
            {"$set": {"status": status, "updatedAt": datetime.now(UTC)}},
        )
        if not updated:
            raise JobNotFoundError(f"Job {job_id} not found")
        logger.info(f"Job {job_id} moved to {status}", extra={"job_id": job_id})
        return await self.get(job_id)

    async def delete(self, job_id: str) -> None:
        if not await self.jobs.delete_one({"_id": job_id}):
            raise JobNotFoundError(f"Job {job_id} not found")
        logger.info(f"Job {job_id} deleted", extra={"job_id": job_id})
