"""Request dependencies: app-scoped components, the caller's identity, role guards."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, Request, status

from jobboard.core.database import Database, get_db
from jobboard.services.accounts import AccountNotFoundError, AccountService
from jobboard.services.applications import ApplicationService
from jobboard.services.email import EmailSender
from jobboard.services.jobs import JobService
from jobboard.services.revocation import RevocationStoreError
from jobboard.services.tokens import (
    TokenError,
    TokenExpiredError,
    TokenKind,
    TokenLifecycleManager,
    TokenPayload,
    TokenRevokedError,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The verified caller: their account plus the access token they presented."""

    account: dict[str, Any]
    token: str
    payload: TokenPayload

    @property
    def account_id(self) -> str:
        return self.account["_id"]

    @property
    def role(self) -> str:
        return self.account["role"]


def get_token_manager(request: Request) -> TokenLifecycleManager:
    return request.app.state.token_manager


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_account_service(db: Database = Depends(get_db)) -> AccountService:
    """Dependency to get account service."""
    return AccountService(db)


def get_job_service(db: Database = Depends(get_db)) -> JobService:
    """Dependency to get job service."""
    return JobService(db)


def get_application_service(db: Database = Depends(get_db)) -> ApplicationService:
    """Dependency to get application service."""
    return ApplicationService(db)


def token_error_to_http(e: Exception) -> HTTPException:
    """Translate a token or revocation store failure into the HTTP error to raise."""
    if isinstance(e, RevocationStoreError):
        logger.error(f"Revocation store unavailable: {e}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is temporarily unavailable",
        )
    if isinstance(e, TokenExpiredError):
        detail = "Token has expired"
    elif isinstance(e, TokenRevokedError):
        detail = "Token has been revoked"
    else:
        detail = str(e)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header is None:
        return None
    if not auth_header.startswith(BEARER_PREFIX) or not auth_header[len(BEARER_PREFIX) :].strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_header[len(BEARER_PREFIX) :].strip()


async def _authenticate(
    token: str,
    token_manager: TokenLifecycleManager,
    account_service: AccountService,
) -> Principal:
    try:
        payload = await token_manager.verify(token, TokenKind.ACCESS)
    except (TokenError, RevocationStoreError) as e:
        raise token_error_to_http(e) from e

    try:
        account = await account_service.get(payload.subject_id)
    except AccountNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return Principal(account=account, token=token, payload=payload)


async def get_principal(
    request: Request,
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    account_service: AccountService = Depends(get_account_service),
) -> Principal:
    """Dependency requiring a valid access token."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _authenticate(token, token_manager, account_service)


async def get_optional_principal(
    request: Request,
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    account_service: AccountService = Depends(get_account_service),
) -> Principal | None:
    """Like ``get_principal`` but anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    return await _authenticate(token, token_manager, account_service)


def require_roles(*roles: str) -> Callable[..., Awaitable[Principal]]:
    """Build a dependency that admits only callers holding one of ``roles``."""
    allowed = frozenset(roles)

    async def check_role(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return principal

    return check_role
