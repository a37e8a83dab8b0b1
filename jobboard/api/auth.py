"""Authentication API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.api.deps import (
    Principal,
    get_account_service,
    get_email_sender,
    get_principal,
    get_token_manager,
    token_error_to_http,
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
from jobboard.services.accounts import (
    AccountExistsError,
    AccountNotFoundError,
    AccountService,
    InvalidCredentialsError,
)
from jobboard.services.email import EmailDeliveryError, EmailSender
from jobboard.services.revocation import RevocationStoreError
from jobboard.services.tokens import TokenError, TokenKind, TokenLifecycleManager

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent"

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(token_manager: TokenLifecycleManager, account: dict[str, Any]) -> dict[str, Any]:
    pair = token_manager.issue_access_and_refresh(account["_id"], account["role"])
    return {
        "access_token": pair.access_token,
        "refresh_token": pair.refresh_token,
        "token_type": "bearer",
        "expires_in": int(token_manager.expiries.access.total_seconds()),
    }


async def _send_verification(
    account: dict[str, Any],
    token_manager: TokenLifecycleManager,
    email_sender: EmailSender,
) -> None:
    token = token_manager.issue_email_verification_token(account["_id"])
    try:
        await email_sender.send_email_verification(account["email"], account["name"], token)
    except EmailDeliveryError as e:
        logger.warning(f"Could not send verification email to account {account['_id']}: {e}")


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AuthResponse:
    """Create an employer or job seeker account and sign it in.

    A verification link is emailed to the new address.
    """
    try:
        account = await account_service.register(
            name=request.name,
            email=request.email,
            password=request.password,
            role=request.role,
            company_name=request.company_name,
        )
    except AccountExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    tokens = _token_response(token_manager, account)
    await _send_verification(account, token_manager, email_sender)
    return AuthResponse(**tokens, account=AccountResponse.model_validate(account))


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> AuthResponse:
    """Authenticate and get JWT tokens."""
    try:
        account = await account_service.authenticate(request.email, request.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        ) from e

    logger.info(f"Account logged in: {account['_id']}")
    tokens = _token_response(token_manager, account)
    return AuthResponse(**tokens, account=AccountResponse.model_validate(account))


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    request: RefreshRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> TokenResponse:
    """Exchange a refresh token for a new token pair.

    The presented refresh token is revoked (token rotation), so it works once.
    """
    try:
        payload = await token_manager.consume(request.refresh_token, TokenKind.REFRESH)
        account = await account_service.get(payload.subject_id)
        tokens = _token_response(token_manager, account)
    except (TokenError, RevocationStoreError) as e:
        raise token_error_to_http(e) from e
    except AccountNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        ) from e

    return TokenResponse(**tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest | None = None,
    principal: Principal = Depends(get_principal),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> MessageResponse:
    """Log out the current account.

    Revokes the presented access token for the rest of its lifetime, and the
    refresh token too when one is supplied and valid.
    """
    try:
        await token_manager.revoke_for_remaining_lifetime(principal.token, principal.payload)

        refresh_token = request.refresh_token if request else None
        if refresh_token:
            try:
                refresh_payload = await token_manager.verify(refresh_token, TokenKind.REFRESH)
            except TokenError as e:
                logger.debug(f"Refresh token not revoked on logout: {e}")
            else:
                if refresh_payload.subject_id == principal.account_id:
                    await token_manager.revoke_for_remaining_lifetime(refresh_token, refresh_payload)
    except RevocationStoreError as e:
        raise token_error_to_http(e) from e

    logger.info(
        f"Account logged out: {principal.account_id}",
        extra={"account_id": principal.account_id},
    )
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    email_sender: EmailSender = Depends(get_email_sender),
) -> MessageResponse:
    """Email a password reset link.

    The response is identical whether or not the account exists.
    """
    account = await account_service.get_by_email(request.email)
    if account is not None:
        token = token_manager.issue_password_reset_token(account["_id"])
        try:
            await email_sender.send_password_reset(account["email"], account["name"], token)
        except EmailDeliveryError as e:
            logger.warning(f"Could not send reset email to account {account['_id']}: {e}")
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> MessageResponse:
    """Set a new password with a reset token. Each reset token works once."""
    try:
        payload = await token_manager.consume(request.token, TokenKind.RESET)
    except (TokenError, RevocationStoreError) as e:
        raise token_error_to_http(e) from e

    try:
        await account_service.set_password(payload.subject_id, request.password)
    except AccountNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account no longer exists",
        ) from e

    return MessageResponse(message="Password has been reset")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    request: VerifyEmailRequest,
    account_service: AccountService = Depends(get_account_service),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> MessageResponse:
    """Confirm an email address. Each verification token works once."""
    try:
        payload = await token_manager.consume(request.token, TokenKind.EMAIL_VERIFICATION)
    except (TokenError, RevocationStoreError) as e:
        raise token_error_to_http(e) from e

    try:
        await account_service.mark_email_verified(payload.subject_id)
    except AccountNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account no longer exists",
        ) from e

    logger.info(f"Email verified for account {payload.subject_id}")
    return MessageResponse(message="Email verified")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    principal: Principal = Depends(get_principal),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    email_sender: EmailSender = Depends(get_email_sender),
) -> MessageResponse:
    if principal.account.get("emailVerified"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified",
        )
    await _send_verification(principal.account, token_manager, email_sender)
    return MessageResponse(message="Verification email sent")


@router.get("/me", response_model=AccountResponse)
async def get_me(principal: Principal = Depends(get_principal)) -> AccountResponse:
    """Get the current account's information."""
    return AccountResponse.model_validate(principal.account)
