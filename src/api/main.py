"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures the storage and email adapters, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from psycopg_pool import AsyncConnectionPool

from src.adapters.repository.memory import (
    InMemoryPendingRegistrationRepository,
    InMemorySettingsRepository,
    InMemoryUserRepository,
)
from src.adapters.repository.postgres import (
    PostgresPendingRegistrationRepository,
    PostgresSettingsRepository,
    PostgresUserRepository,
    run_migrations,
)
from src.adapters.smtp.console import ConsoleNotifier
from src.adapters.smtp.messages import MessageBuilder
from src.adapters.smtp.smtp import SmtpNotifier
from src.api.dependencies import get_pool
from src.api.v1 import router as v1_router
from src.config.settings import Settings, configure_logging, get_settings
from src.domain.ports import Notifier

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Registration API v1 - Register, verify email, act on approval links",
    },
    {
        "name": "admin",
        "description": "Reviewer API - Moderate pending registrations and approval settings",
    },
]


def build_notifier(settings: Settings) -> Notifier:
    """Create the configured email adapter."""
    messages = MessageBuilder(base_url=settings.base_url)
    if settings.email_backend == "smtp":
        logger.info("Email delivery via SMTP: host=%s port=%s", settings.smtp_host, settings.smtp_port)
        return SmtpNotifier(
            messages,
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )
    logger.warning("No SMTP configured. Emails will be logged instead of sent.")
    return ConsoleNotifier(messages)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool on startup (postgres backend)
    - Runs migrations on startup
    - Wires repositories and notifier into app state
    - Closes connection pool on shutdown
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting application...")

    pool: AsyncConnectionPool | None = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")

        # Create connection pool with explicit sizing
        pool = AsyncConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            timeout=settings.pool_timeout,
            max_idle=settings.pool_max_idle,
            open=False,
        )
        await pool.open()

        logger.info("Running database migrations...")
        await run_migrations(pool)

        app.state.pending_repository = PostgresPendingRegistrationRepository(pool)
        app.state.user_repository = PostgresUserRepository(pool)
        app.state.settings_repository = PostgresSettingsRepository(pool)
    else:
        logger.warning("Using in-memory storage; data is lost on restart")
        app.state.pending_repository = InMemoryPendingRegistrationRepository()
        app.state.user_repository = InMemoryUserRepository()
        app.state.settings_repository = InMemorySettingsRepository()

    # Store pool in app state for dependency injection
    app.state.pool = pool
    app.state.notifier = build_notifier(settings)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        await pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="promptmarket-approvals",
    description="Registration Approval API - Moderated sign-up for the prompt template marketplace",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(pool: AsyncConnectionPool | None = Depends(get_pool)) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    if pool is None:
        return {"status": "healthy", "storage": "memory"}

    # Validate database connectivity
    async with pool.connection() as conn:
        await conn.execute("SELECT 1")

    return {"status": "healthy", "storage": "postgres"}
