"""Job posting API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from jobboard.api.deps import (
    Principal,
    get_email_sender,
    get_job_service,
    get_optional_principal,
    require_roles,
)
from jobboard.schemas.job import (
    JobCreate,
    JobDashboardResponse,
    JobDashboardStats,
    JobListResponse,
    JobResponse,
    JobStatusUpdate,
    JobUpdate,
)
from jobboard.services.email import EmailDeliveryError, EmailSender
from jobboard.services.jobs import JobNotFoundError, JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Job {job_id} not found",
    )


def can_manage(principal: Principal | None, job: dict[str, Any]) -> bool:
    """Owners and admins can see and change a posting in any status."""
    if principal is None:
        return False
    return principal.role == "admin" or job.get("postedBy") == principal.account_id


async def get_managed_job(
    job_id: str,
    principal: Principal,
    job_service: JobService,
) -> dict[str, Any]:
    try:
        job = await job_service.get(job_id)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    if not can_manage(principal, job):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own job postings",
        )
    return job


def _listing(jobs: list[dict[str, Any]], total: int, page: int, limit: int) -> JobListResponse:
    return JobListResponse(
        results=len(jobs),
        total=total,
        page=page,
        limit=limit,
        jobs=[JobResponse.model_validate(job) for job in jobs],
    )


@router.get("", response_model=JobListResponse, response_model_exclude_unset=True)
async def list_jobs(
    request: Request,
    job_service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """List approved jobs.

    Supports filtering (``jobType=full-time``, ``salaryRange.min[gte]=50000``),
    ``q`` text search, ``sort``, ``fields`` and ``page``/``limit``.
    """
    jobs, total, page, limit = await job_service.search(
        request.query_params, base_filter={"status": "approved"}
    )
    return _listing(jobs, total, page, limit)


@router.get("/mine", response_model=JobListResponse, response_model_exclude_unset=True)
async def list_my_jobs(
    request: Request,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """List the caller's own postings in every status."""
    jobs, total, page, limit = await job_service.search(
        request.query_params, base_filter={"postedBy": principal.account_id}
    )
    return _listing(jobs, total, page, limit)


@router.get("/admin", response_model=JobListResponse, response_model_exclude_unset=True)
async def list_all_jobs(
    request: Request,
    principal: Principal = Depends(require_roles("admin")),
    job_service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """List postings in every status for moderation (admin only).

    ``status=pending`` narrows the listing to the moderation queue.
    """
    jobs, total, page, limit = await job_service.search(request.query_params)
    return _listing(jobs, total, page, limit)


@router.get("/dashboard", response_model=JobDashboardResponse)
async def employer_dashboard(
    principal: Principal = Depends(require_roles("employer")),
    job_service: JobService = Depends(get_job_service),
) -> JobDashboardResponse:
    """The caller's postings with counts per status and of applications received."""
    jobs, stats = await job_service.dashboard(principal.account_id)
    return JobDashboardResponse(
        stats=JobDashboardStats.model_validate(stats),
        jobs=[JobResponse.model_validate(job) for job in jobs],
    )


@router.get("/{job_id}", response_model=JobResponse, response_model_exclude_unset=True)
async def get_job(
    job_id: str,
    principal: Principal | None = Depends(get_optional_principal),
    job_service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Get a job by ID.

    Postings that are not approved are only visible to their owner and admins.
    Each public view increments the view counter.
    """
    try:
        job = await job_service.get(job_id)
        if job.get("status") != "approved" and not can_manage(principal, job):
            raise _not_found(job_id)
        if not can_manage(principal, job):
            job = await job_service.get(job_id, count_view=True)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    return JobResponse.model_validate(job)


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_job(
    job_in: JobCreate,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
    email_sender: EmailSender = Depends(get_email_sender),
) -> JobResponse:
    """Create a job posting. New postings start as ``pending`` until approved."""
    data = job_in.model_dump(by_alias=True, exclude_none=True)
    if not data.get("companyName"):
        data["companyName"] = principal.account.get("companyName")
    if not data.get("companyName"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="companyName is required",
        )

    job = await job_service.create(data, posted_by=principal.account_id)

    try:
        await email_sender.send_job_posted(
            principal.account["email"], principal.account["name"], job["title"], job["_id"]
        )
    except EmailDeliveryError as e:
        logger.warning(f"Could not send job confirmation for {job['_id']}: {e}")

    return JobResponse.model_validate(job)


@router.patch("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: str,
    job_in: JobUpdate,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
) -> JobResponse:
    await get_managed_job(job_id, principal, job_service)
    try:
        job = await job_service.update(job_id, job_in.model_dump(by_alias=True, exclude_unset=True))
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    return JobResponse.model_validate(job)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: str,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
) -> None:
    await get_managed_job(job_id, principal, job_service)
    try:
        await job_service.delete(job_id)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e


@router.patch("/{job_id}/status", response_model=JobResponse)
async def moderate_job(
    job_id: str,
    status_in: JobStatusUpdate,
    principal: Principal = Depends(require_roles("admin")),
    job_service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Approve, reject or close a posting (admin only)."""
    try:
        job = await job_service.set_status(job_id, status_in.status)
    except JobNotFoundError as e:
        raise _not_found(job_id) from e
    logger.info(f"Admin {principal.account_id} set job {job_id} to {status_in.status}")
    return JobResponse.model_validate(job)
