"""Job application API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.api.deps import (
    Principal,
    get_application_service,
    get_job_service,
    get_principal,
    require_roles,
)
from jobboard.api.jobs import get_managed_job
from jobboard.schemas.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusUpdate,
)
from jobboard.services.applications import (
    ApplicationError,
    ApplicationNotFoundError,
    ApplicationService,
    DuplicateApplicationError,
    JobNotOpenError,
)
from jobboard.services.jobs import JobService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["applications"])


def _listing(applications: list[dict[str, Any]]) -> ApplicationListResponse:
    return ApplicationListResponse(
        results=len(applications),
        applications=[ApplicationResponse.model_validate(a) for a in applications],
    )


async def _get_application(
    application_id: str, application_service: ApplicationService
) -> dict[str, Any]:
    try:
        return await application_service.get(application_id)
    except ApplicationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e


@router.post(
    "/jobs/{job_id}/apply",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_job(
    job_id: str,
    application_in: ApplicationCreate,
    principal: Principal = Depends(require_roles("jobseeker")),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationResponse:
    """Apply to an approved job. One active application per job and applicant."""
    try:
        application = await application_service.apply(
            job_id,
            principal.account_id,
            cover_letter=application_in.cover_letter,
            resume_url=application_in.resume_url,
        )
    except JobNotOpenError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except DuplicateApplicationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return ApplicationResponse.model_validate(application)


@router.get("/applications/mine", response_model=ApplicationListResponse)
async def list_my_applications(
    principal: Principal = Depends(require_roles("jobseeker")),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationListResponse:
    applications = await application_service.list_for_applicant(principal.account_id)
    return _listing(applications)


@router.get("/applications/received", response_model=ApplicationListResponse)
async def list_received_applications(
    principal: Principal = Depends(require_roles("employer")),
    job_service: JobService = Depends(get_job_service),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationListResponse:
    """List applications to every posting of the calling employer, newest first."""
    jobs = await job_service.list_posted_by(principal.account_id)
    applications = await application_service.list_for_jobs([job["_id"] for job in jobs])
    return _listing(applications)


@router.get("/jobs/{job_id}/applications", response_model=ApplicationListResponse)
async def list_job_applications(
    job_id: str,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationListResponse:
    """List applications to a job (job owner or admin)."""
    await get_managed_job(job_id, principal, job_service)
    applications = await application_service.list_for_job(job_id)
    return _listing(applications)


@router.patch("/applications/{application_id}/status", response_model=ApplicationResponse)
async def review_application(
    application_id: str,
    status_in: ApplicationStatusUpdate,
    principal: Principal = Depends(require_roles("employer", "admin")),
    job_service: JobService = Depends(get_job_service),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationResponse:
    """Move an application to reviewing, accepted or rejected (job owner or admin)."""
    application = await _get_application(application_id, application_service)
    await get_managed_job(application["job"], principal, job_service)

    try:
        application = await application_service.set_status(application_id, status_in.status)
    except ApplicationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return ApplicationResponse.model_validate(application)


@router.post("/applications/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: str,
    principal: Principal = Depends(get_principal),
    application_service: ApplicationService = Depends(get_application_service),
) -> ApplicationResponse:
    """Withdraw an application (the applicant only)."""
    application = await _get_application(application_id, application_service)
    if application["applicant"] != principal.account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only withdraw your own applications",
        )

    application = await application_service.withdraw(application_id)
    return ApplicationResponse.model_validate(application)
