"""Pytest configuration and fixtures for job board tests.

Document storage:
- If TEST_MONGODB_URI is set, every test gets its own database on that server,
  dropped afterwards
- Otherwise the same MongoDatabase runs on mongomock-motor's in-process client

The revocation list is the in-memory store, so no Redis is needed.
"""

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorClient

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["RATE_LIMIT_REQUESTS_PER_MINUTE"] = "10000"
os.environ.pop("REDIS_URL", None)

TEST_MONGODB_URI = os.environ.get("TEST_MONGODB_URI")

from jobboard.core.config import Settings  # noqa: E402
from jobboard.core.database import ACCOUNTS, MongoDatabase  # noqa: E402
from jobboard.main import create_app  # noqa: E402
from jobboard.middleware.rate_limit import RateLimiter  # noqa: E402
from jobboard.services.email import EmailSender  # noqa: E402
from jobboard.services.passwords import hash_password  # noqa: E402
from jobboard.services.revocation import InMemoryRevocationStore  # noqa: E402
from jobboard.services.tokens import TokenLifecycleManager  # noqa: E402

TEST_SECRET_KEY = os.environ["JWT_SECRET_KEY"]
TEST_PASSWORD = "correct-horse-battery"
TEST_ADMIN_EMAIL = "admin@example.com"


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str

    @property
    def token(self) -> str | None:
        """The ``token`` query parameter of the first link in the body."""
        for word in self.body.split():
            if word.startswith("http"):
                values = parse_qs(urlparse(word).query).get("token")
                if values:
                    return values[0]
        return None


class RecordingEmailSender(EmailSender):
    """Keeps every message instead of delivering it."""

    def __init__(self, client_url: str = "http://client.test"):
        super().__init__(client_url)
        self.sent: list[SentEmail] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append(SentEmail(to=to, subject=subject, body=body))

    def last_to(self, to: str) -> SentEmail:
        for message in reversed(self.sent):
            if message.to == to:
                return message
        raise AssertionError(f"No email sent to {to}")


@dataclass
class Session:
    """A signed-in test account."""

    account: dict[str, Any]
    access_token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return auth_headers(self.access_token)

    @property
    def id(self) -> str:
        return self.account["id"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret_key=TEST_SECRET_KEY,
        rate_limit_requests_per_minute=10000,
        client_url="http://client.test",
        debug=True,
    )


def mock_database(name: str = "jobboard_test") -> MongoDatabase:
    """A MongoDatabase on a fresh in-process mock server."""
    return MongoDatabase(AsyncMongoMockClient(tz_aware=True), name)


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[MongoDatabase, None]:
    name = f"jobboard_test_{uuid4().hex[:12]}"
    if TEST_MONGODB_URI:
        db = MongoDatabase(AsyncIOMotorClient(TEST_MONGODB_URI, tz_aware=True), name)
        await db.ensure_indexes()
        yield db
        await db.client.drop_database(name)
    else:
        db = mock_database(name)
        await db.ensure_indexes()
        yield db
    await db.close()


@pytest.fixture
def revocation_store() -> InMemoryRevocationStore:
    return InMemoryRevocationStore()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def app(
    test_settings: Settings,
    database: MongoDatabase,
    revocation_store: InMemoryRevocationStore,
    email_sender: RecordingEmailSender,
) -> FastAPI:
    """A fresh app; the rate limiter has no strict groups so tests never hit 429."""
    return create_app(
        settings=test_settings,
        database=database,
        revocation_store=revocation_store,
        email_sender=email_sender,
        rate_limiter=RateLimiter(requests_per_minute=10000, path_configs={}),
    )


@pytest.fixture
def token_manager(app: FastAPI) -> TokenLifecycleManager:
    return app.state.token_manager


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(
    client: AsyncClient,
    email: str,
    role: str = "jobseeker",
    **extra: Any,
) -> Session:
    payload = {"name": "Test User", "email": email, "password": TEST_PASSWORD, "role": role}
    payload.update(extra)
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()
    return Session(
        account=data["account"],
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
    )


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD) -> Session:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()
    return Session(
        account=data["account"],
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
    )


@pytest_asyncio.fixture
async def employer(async_client: AsyncClient) -> Session:
    return await register(
        async_client, "employer@example.com", role="employer", companyName="Acme Health"
    )


@pytest_asyncio.fixture
async def jobseeker(async_client: AsyncClient) -> Session:
    return await register(async_client, "seeker@example.com", role="jobseeker")


@pytest_asyncio.fixture
async def admin(async_client: AsyncClient, database: MongoDatabase) -> Session:
    """Admins cannot self-register, so the account is written straight to the store."""
    now = datetime.now(UTC)
    await database.collection(ACCOUNTS).insert_one(
        {
            "_id": uuid4().hex,
            "name": "Admin",
            "email": TEST_ADMIN_EMAIL,
            "passwordHash": hash_password(TEST_PASSWORD),
            "role": "admin",
            "emailVerified": True,
            "createdAt": now,
            "updatedAt": now,
            "__v": 0,
        }
    )
    return await login(async_client, TEST_ADMIN_EMAIL)


def job_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": "Registered Nurse",
        "description": "Night shifts on the cardiac ward",
        "skills": ["patient care", "triage"],
        "requirements": ["RN license"],
        "location": {"city": "Boston", "state": "MA", "country": "US", "remote": False},
        "salaryRange": {"min": 60000, "max": 85000, "currency": "USD"},
        "jobType": "full-time",
    }
    payload.update(overrides)
    return payload


async def create_job(
    client: AsyncClient,
    owner: Session,
    approve_as: Session | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    response = await client.post("/api/jobs", json=job_payload(**overrides), headers=owner.headers)
    assert response.status_code == 201, response.text
    job = response.json()
    if approve_as is not None:
        response = await client.patch(
            f"/api/jobs/{job['id']}/status",
            json={"status": "approved"},
            headers=approve_as.headers,
        )
        assert response.status_code == 200, response.text
        job = response.json()
    return job


@pytest_asyncio.fixture
async def approved_job(async_client: AsyncClient, employer: Session, admin: Session) -> dict[str, Any]:
    return await create_job(async_client, employer, approve_as=admin)
