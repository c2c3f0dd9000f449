"""
Shared fixtures for integration tests.

PostgreSQL fixtures connect to DATABASE_URL and skip the requesting test
when no database is reachable. Tables are truncated before each test.
"""

from collections.abc import AsyncGenerator

import psycopg
import pytest
from psycopg_pool import AsyncConnectionPool

from src.adapters.repository.postgres import (
    PostgresPendingRegistrationRepository,
    PostgresSettingsRepository,
    PostgresUserRepository,
    run_migrations,
)
from src.config.settings import get_settings


@pytest.fixture
async def pool() -> AsyncGenerator[AsyncConnectionPool, None]:
    """Create a migrated connection pool, or skip without a database."""
    settings = get_settings()
    try:
        conn = await psycopg.AsyncConnection.connect(settings.database_url, connect_timeout=2)
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")
    await conn.close()

    pool = AsyncConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    await pool.open()
    await run_migrations(pool)
    async with pool.connection() as conn:
        await conn.execute(
            "TRUNCATE pending_registrations, settings, users RESTART IDENTITY CASCADE"
        )
        await conn.commit()
    yield pool
    await pool.close()


@pytest.fixture
def pg_pending_repository(pool: AsyncConnectionPool) -> PostgresPendingRegistrationRepository:
    return PostgresPendingRegistrationRepository(pool)


@pytest.fixture
def pg_user_repository(pool: AsyncConnectionPool) -> PostgresUserRepository:
    return PostgresUserRepository(pool)


@pytest.fixture
def pg_settings_repository(pool: AsyncConnectionPool) -> PostgresSettingsRepository:
    return PostgresSettingsRepository(pool)
