"""Job board API Router - aggregates all API routes."""

from fastapi import APIRouter

from jobboard.api import applications, auth, jobs

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

# Include routers
api_router.include_router(auth.router)
api_router.include_router(jobs.router)
api_router.include_router(applications.router)
