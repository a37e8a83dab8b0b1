"""Account registration, lookup and credential checks."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from jobboard.core.database import ACCOUNTS, Database
from jobboard.services.passwords import burn_verification_time, hash_password, verify_password

logger = logging.getLogger(__name__)

ROLES = ("admin", "employer", "jobseeker")

# Never leaves the service layer
_PRIVATE_FIELDS = {"passwordHash": 0, "__v": 0}


class AccountError(Exception):
    """Base account error."""

    pass


class AccountExistsError(AccountError):
    """An account with this email is already registered."""

    pass


class InvalidCredentialsError(AccountError):
    """Invalid email or password."""

    pass


class AccountNotFoundError(AccountError):
    """No account with the given id or email."""

    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    """Service for account operations."""

    def __init__(self, database: Database):
        self.accounts = database.collection(ACCOUNTS)

    async def get(self, account_id: str) -> dict[str, Any]:
        account = await self.accounts.find_one({"_id": account_id}, _PRIVATE_FIELDS)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    async def get_by_email(self, email: str) -> dict[str, Any] | None:
        return await self.accounts.find_one({"email": normalize_email(email)}, _PRIVATE_FIELDS)

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str,
        company_name: str | None = None,
    ) -> dict[str, Any]:
        """Create an account and return it without its password hash."""
        email = normalize_email(email)
        role = role.strip().lower()
        if role not in ROLES:
            raise AccountError(f"Unknown role: {role}")

        if await self.accounts.find_one({"email": email}) is not None:
            raise AccountExistsError("An account with this email already exists")

        now = datetime.now(UTC)
        account: dict[str, Any] = {
            "_id": uuid4().hex,
            "name": name.strip(),
            "email": email,
            "passwordHash": hash_password(password),
            "role": role,
            "emailVerified": False,
            "createdAt": now,
            "updatedAt": now,
            "__v": 0,
        }
        if company_name:
            account["companyName"] = company_name.strip()

        await self.accounts.insert_one(account)
        logger.info(f"Registered {role} account {account['_id']}")
        return await self.get(account["_id"])

    async def authenticate(self, email: str, password: str) -> dict[str, Any]:
        """Return the account for valid credentials.

        Raises InvalidCredentialsError for both "no such email" and "wrong
        password" so callers cannot tell which one failed.
        """
        account = await self.accounts.find_one({"email": normalize_email(email)})

        if account is None:
            burn_verification_time(password)
            raise InvalidCredentialsError("Invalid email or password")

        if not verify_password(password, account.get("passwordHash", "")):
            raise InvalidCredentialsError("Invalid email or password")

        return await self.get(account["_id"])

    async def set_password(self, account_id: str, password: str) -> None:
        updated = await self.accounts.update_one(
            {"_id": account_id},
            {"$set": {"passwordHash": hash_password(password), "updatedAt": datetime.now(UTC)}},
        )
        if not updated:
            raise AccountNotFoundError(f"Account {account_id} not found")
        logger.info(f"Password changed for account {account_id}")

    async def mark_email_verified(self, account_id: str) -> None:
        updated = await self.accounts.update_one(
            {"_id": account_id},
            {"$set": {"emailVerified": True, "updatedAt": datetime.now(UTC)}},
        )
        if not updated:
            raise AccountNotFoundError(f"Account {account_id} not found")
