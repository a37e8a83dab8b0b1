"""Health check endpoint with database and revocation store connectivity."""

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from jobboard.core.database import Database, check_db_connection, get_db

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    revocation_store: str = "disconnected"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy or degraded"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(
    request: Request,
    response: Response,
    db: Database = Depends(get_db),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if the database is unavailable. A revocation store outage
    alone reports ``degraded``: reads still work but sign-in does not.
    """
    db_healthy = await check_db_connection(db)
    store_healthy = await request.app.state.revocation_store.ping()

    # Set appropriate status code for container orchestration
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        overall = "unhealthy"
    elif not store_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=request.app.state.settings.app_version,
        database="connected" if db_healthy else "disconnected",
        revocation_store="connected" if store_healthy else "disconnected",
    )
