"""Issuing, verifying and revoking signed tokens.

Four kinds share one signing secret and differ by purpose claim and lifetime:
``access`` and ``refresh`` for sessions, ``reset`` for password resets and
``email_verification`` for confirming an address.
"""

import logging
import math
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from jobboard.core.config import Settings
from jobboard.services.revocation import RevocationStore

logger = logging.getLogger(__name__)


class TokenKind(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"
    EMAIL_VERIFICATION = "email_verification"


class TokenError(Exception):
    """Base token error."""

    pass


class TokenCreationError(TokenError):
    """A token could not be issued because required identity was missing."""

    pass


class TokenExpiredError(TokenError):
    """The token is past its expiry."""

    pass


class TokenMalformedError(TokenError):
    """Bad signature, bad structure, or missing claims."""

    pass


class TokenKindMismatchError(TokenMalformedError):
    """The token is valid but was issued for a different purpose."""

    pass


class TokenRevokedError(TokenError):
    """The token was explicitly revoked before its natural expiry."""

    pass


@dataclass(frozen=True)
class TokenExpiries:
    access: timedelta = timedelta(hours=24)
    refresh: timedelta = timedelta(days=7)
    reset: timedelta = timedelta(hours=1)
    email_verification: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenExpiries":
        return cls(
            access=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            refresh=timedelta(days=settings.jwt_refresh_token_expire_days),
            reset=timedelta(minutes=settings.password_reset_expire_minutes),
            email_verification=timedelta(hours=settings.email_verification_expire_hours),
        )

    def for_kind(self, kind: TokenKind) -> timedelta:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenPayload:
    """Decoded, verified token claims."""

    subject_id: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    role: str | None = None
    token_id: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


def normalize_role(role: Any) -> str:
    return str(role).strip().lower()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenLifecycleManager:
    """Creates, validates and revokes tokens against one revocation store."""

    def __init__(
        self,
        secret_key: str,
        revocation_store: RevocationStore,
        algorithm: str = "HS256",
        expiries: TokenExpiries | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.revocation_store = revocation_store
        self.expiries = expiries or TokenExpiries()
        self._now = now

    @classmethod
    def from_settings(
        cls, settings: Settings, revocation_store: RevocationStore
    ) -> "TokenLifecycleManager":
        return cls(
            secret_key=settings.effective_jwt_secret_key,
            revocation_store=revocation_store,
            algorithm=settings.jwt_algorithm,
            expiries=TokenExpiries.from_settings(settings),
        )

    def _issue(self, subject_id: Any, kind: TokenKind, role: str | None = None) -> str:
        if subject_id is None or not str(subject_id).strip():
            raise TokenCreationError(f"Cannot issue {kind.value} token without a subject id")

        issued_at = self._now()
        payload: dict[str, Any] = {
            "sub": str(subject_id),
            "type": kind.value,
            "iat": issued_at,
            "exp": issued_at + self.expiries.for_kind(kind),
            # Makes every issued token string unique, even within the same second
            "jti": secrets.token_hex(16),
        }
        if role is not None:
            payload["role"] = role

        token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def issue_access_and_refresh(self, subject_id: Any, role: Any) -> TokenPair:
        """Issue a session token pair with the role normalized to lowercase."""
        if role is None or not str(role).strip():
            raise TokenCreationError("Cannot issue session tokens without a role")
        normalized = normalize_role(role)
        return TokenPair(
            access_token=self._issue(subject_id, TokenKind.ACCESS, normalized),
            refresh_token=self._issue(subject_id, TokenKind.REFRESH, normalized),
        )

    def issue_password_reset_token(self, subject_id: Any) -> str:
        return self._issue(subject_id, TokenKind.RESET)

    def issue_email_verification_token(self, subject_id: Any) -> str:
        return self._issue(subject_id, TokenKind.EMAIL_VERIFICATION)

    def _decode(self, token: str) -> TokenPayload:
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                # Expiry is checked below against the injected clock
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["exp", "iat", "sub"],
                },
            )
        except PyJWTError as e:
            raise TokenMalformedError(f"Invalid token: {e}") from e

        try:
            kind = TokenKind(claims.get("type"))
            issued_at = datetime.fromtimestamp(claims["iat"], tz=UTC)
            expires_at = datetime.fromtimestamp(claims["exp"], tz=UTC)
        except (ValueError, TypeError, OverflowError, OSError) as e:
            raise TokenMalformedError(f"Invalid token: bad claims: {e}") from e

        if expires_at <= self._now():
            raise TokenExpiredError("Token has expired")

        return TokenPayload(
            subject_id=str(claims["sub"]),
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
            role=claims.get("role"),
            token_id=claims.get("jti"),
            claims=claims,
        )

    async def verify(self, token: str, kind: TokenKind | None = None) -> TokenPayload:
        """Decode a token, rejecting revoked, malformed, expired or wrong-kind tokens.

        The revocation list is consulted first, so a revoked token fails as
        revoked even while its signature and expiry are still valid.
        """
        if not token:
            raise TokenMalformedError("Invalid token: empty")

        if await self.revocation_store.contains(token):
            raise TokenRevokedError("Token has been revoked")

        payload = self._decode(token)
        if kind is not None and payload.kind != kind:
            raise TokenKindMismatchError(f"Not a {kind.value} token")
        return payload

    async def revoke(self, token: str, ttl_seconds: int) -> None:
        """Put a token on the revocation list for ``ttl_seconds``."""
        await self.revocation_store.add(token, int(ttl_seconds))

    def remaining_lifetime(self, payload: TokenPayload) -> int:
        """Seconds until the token expires naturally (never negative)."""
        remaining = (payload.expires_at - self._now()).total_seconds()
        return max(0, math.ceil(remaining))

    async def revoke_for_remaining_lifetime(self, token: str, payload: TokenPayload) -> None:
        """Revoke a verified token for as long as it would otherwise stay valid."""
        ttl = self.remaining_lifetime(payload)
        await self.revoke(token, ttl)
        logger.debug(f"Revoked {payload.kind.value} token {payload.token_id} for {ttl}s")

    async def consume(self, token: str, kind: TokenKind) -> TokenPayload:
        """Verify a single-use token and revoke it in one step.

        Of several concurrent calls with the same token only one returns; the
        rest fail as revoked, so a refresh, reset or verification token can
        never be spent twice.
        """
        payload = await self.verify(token, kind)
        if not await self.revocation_store.claim(token, self.remaining_lifetime(payload)):
            raise TokenRevokedError("Token has been revoked")
        logger.debug(f"Consumed {payload.kind.value} token {payload.token_id}")
        return payload

    async def is_revoked(self, token: str) -> bool:
        return await self.revocation_store.contains(token)
