"""Job board backend - FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from jobboard.api import api_router
from jobboard.api.health import router as health_router
from jobboard.core import Database, Settings, create_database, get_settings, setup_logging
from jobboard.core.logging import get_logger
from jobboard.middleware import RateLimiter, RateLimitMiddleware, rate_limit_cleanup_loop
from jobboard.services.email import EmailSender, LoggingEmailSender
from jobboard.services.revocation import (
    InMemoryRevocationStore,
    RevocationStore,
    create_revocation_store,
)
from jobboard.services.tokens import TokenLifecycleManager

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def revocation_cleanup_loop(store: InMemoryRevocationStore, interval_seconds: float) -> None:
    """Periodically drop expired entries from the in-memory revocation list."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = store.cleanup_expired()
            if removed > 0:
                logger.debug(f"Removed {removed} expired revocation entries")
        except Exception:
            logger.exception("Error cleaning up revocation list")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    database: Database = app.state.database
    try:
        await database.ensure_indexes()
    except PyMongoError as e:
        # Requests fail on their own until the server is reachable; /health reports it
        logger.warning(f"Could not create database indexes: {e}")

    tasks: list[asyncio.Task] = []

    store: RevocationStore = app.state.revocation_store
    if isinstance(store, InMemoryRevocationStore):
        revocation_task = asyncio.create_task(
            revocation_cleanup_loop(store, settings.revocation_cleanup_interval_seconds),
            name="revocation-cleanup",
        )
        revocation_task.add_done_callback(task_done_callback)
        tasks.append(revocation_task)

    rate_limit_task = asyncio.create_task(
        rate_limit_cleanup_loop(app.state.rate_limiter),
        name="rate-limit-cleanup",
    )
    rate_limit_task.add_done_callback(task_done_callback)
    tasks.append(rate_limit_task)

    yield

    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await store.close()
    await database.close()


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    revocation_store: RevocationStore | None = None,
    email_sender: EmailSender | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Stateful components are built once here and kept on ``app.state``;
    callers (tests) can pass their own.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Job board API: accounts, job postings and applications",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    if revocation_store is None:
        revocation_store = create_revocation_store(settings)
    if email_sender is None:
        email_sender = LoggingEmailSender(settings.client_url)
    if rate_limiter is None:
        rate_limiter = RateLimiter(requests_per_minute=settings.rate_limit_requests_per_minute)

    app.state.settings = settings
    app.state.database = database if database is not None else create_database(settings)
    app.state.revocation_store = revocation_store
    app.state.token_manager = TokenLifecycleManager.from_settings(settings, revocation_store)
    app.state.email_sender = email_sender
    app.state.rate_limiter = rate_limiter

    # Health endpoints excluded for Kubernetes/monitoring probes
    app.add_middleware(
        RateLimitMiddleware,
        rate_limiter=app.state.rate_limiter,
        exclude_paths=["/health", "/metrics", "/docs", "/redoc", "/openapi.json"],
    )

    # CORS middleware - outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on 429 responses too.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
