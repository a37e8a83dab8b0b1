# Job board Pydantic schemas
from jobboard.schemas.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusUpdate,
)
from jobboard.schemas.auth import (
    AccountResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
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

__all__ = [
    "AccountResponse",
    "ApplicationCreate",
    "ApplicationListResponse",
    "ApplicationResponse",
    "ApplicationStatusUpdate",
    "AuthResponse",
    "ForgotPasswordRequest",
    "JobCreate",
    "JobDashboardResponse",
    "JobDashboardStats",
    "JobListResponse",
    "JobResponse",
    "JobStatusUpdate",
    "JobUpdate",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RefreshRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "TokenResponse",
    "VerifyEmailRequest",
]
