"""Pydantic schemas for authentication API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from jobboard.schemas.base import CamelModel, DocumentResponse


class RegisterRequest(CamelModel):
    """Request for self-registration. Admin accounts cannot be self-registered."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)",
    )
    role: Literal["employer", "jobseeker"] = "jobseeker"
    company_name: str | None = Field(None, max_length=200)

    @field_validator("role", mode="before")
    @classmethod
    def lowercase_role(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    """Request for login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response with JWT tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class AccountResponse(DocumentResponse):
    """Response with account information."""

    name: str
    email: str
    role: str
    email_verified: bool = False
    company_name: str | None = None
    created_at: datetime | None = None


class AuthResponse(TokenResponse):
    """Tokens plus the account they were issued for."""

    account: AccountResponse


class RefreshRequest(BaseModel):
    """Request for token refresh."""

    refresh_token: str


class LogoutRequest(BaseModel):
    """Request for logout with optional refresh token revocation."""

    refresh_token: str | None = Field(
        None,
        description="Refresh token to revoke alongside the access token.",
    )


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request to set a new password with a reset token."""

    token: str = Field(..., min_length=1)
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (minimum 8 characters)",
    )


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
