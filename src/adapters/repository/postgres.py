"""
PostgreSQL repository adapters - Implement the domain repository protocols.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3's async connection pool with raw SQL.

Concurrency Design:
-------------------
No locks are taken in-process. Correctness under concurrent requests
relies on two database mechanisms:

1. **UNIQUE constraints** on pending_registrations(username), (email) and
   users(username), (email). Violations are raised as DuplicateKey with the
   constraint name so the domain can tell the email and username cases apart.

2. **Conditional updates**: review transitions only match rows with
   status = 'pending', resets only match rows with status <> 'pending'.
   Email-link transitions also require the row to still hold the
   unexpired token. A transition that matches no row returns None; the
   caller decides whether that means "already reviewed", "stale link"
   or "lost the race".

Every other psycopg error is logged with context and re-raised as
StoreFailure, so no driver exception crosses into the domain.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import class_row
from psycopg_pool import AsyncConnectionPool

from src.domain.exceptions import DuplicateKey, StoreFailure
from src.domain.ports import PendingRegistration, PendingStatus, Setting, User
from src.domain.system_settings import coerce_setting, serialize_setting

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PENDING_COLUMNS = """
    id, username, email, password_hash, status, created_at,
    reviewed_at, reviewed_by, review_notes,
    approval_token, reject_token, token_expires_at
"""

_USER_COLUMNS = """
    id, username, email, password_hash, created_at,
    email_verified, is_admin, is_manager,
    verification_token, verification_token_expires_at,
    password_reset_token, password_reset_token_expires_at
"""

_SETTING_COLUMNS = "key, value, description, updated_by, updated_at"

_TOKEN_COLUMN_BY_STATUS = {
    PendingStatus.APPROVED: "approval_token",
    PendingStatus.REJECTED: "reject_token",
}


@contextmanager
def _store_errors(operation: str, **context: Any) -> Iterator[None]:
    """Translate psycopg errors into domain store errors."""
    try:
        yield
    except UniqueViolation as e:
        constraint = e.diag.constraint_name
        logger.warning(
            "Unique violation during %s: constraint=%s context=%s", operation, constraint, context
        )
        raise DuplicateKey(constraint) from e
    except psycopg.Error as e:
        logger.exception("Store failure during %s: context=%s", operation, context)
        raise StoreFailure(f"{operation} failed") from e


class _PostgresRepository:
    """Shared query helpers over an AsyncConnectionPool."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 AsyncConnectionPool for database connections
        """
        self._pool = pool

    async def _fetch_one(self, row_type: type[T], sql: str, params: Sequence[Any]) -> T | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=class_row(row_type)) as cursor:
                await cursor.execute(sql, params)
                row = await cursor.fetchone()
            await conn.commit()
            return row

    async def _fetch_all(self, row_type: type[T], sql: str, params: Sequence[Any]) -> list[T]:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=class_row(row_type)) as cursor:
                await cursor.execute(sql, params)
                rows = await cursor.fetchall()
            await conn.commit()
            return rows

    async def _execute(self, sql: str, params: Sequence[Any]) -> int:
        """Run a statement and return the number of affected rows."""
        async with self._pool.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, params)
                rowcount = cursor.rowcount
            await conn.commit()
            return rowcount


class PostgresPendingRegistrationRepository(_PostgresRepository):
    """
    Implements PendingRegistrationRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    async def create(self, username: str, email: str, password_hash: str) -> PendingRegistration:
        sql = f"""
            INSERT INTO pending_registrations (username, email, password_hash, status, created_at)
            VALUES (%s, %s, %s, 'pending', NOW())
            RETURNING {_PENDING_COLUMNS}
        """
        with _store_errors("create pending registration", username=username, email=email):
            row = await self._fetch_one(PendingRegistration, sql, (username, email, password_hash))
        assert row is not None
        return row

    async def find_by_id(self, pending_id: int) -> PendingRegistration | None:
        sql = f"SELECT {_PENDING_COLUMNS} FROM pending_registrations WHERE id = %s"
        with _store_errors("find pending registration by id", pending_id=pending_id):
            return await self._fetch_one(PendingRegistration, sql, (pending_id,))

    async def find_by_username_or_email(
        self, username: str, email: str
    ) -> PendingRegistration | None:
        sql = f"""
            SELECT {_PENDING_COLUMNS} FROM pending_registrations
            WHERE username = %s OR email = %s
            ORDER BY (email = %s) DESC, id
            LIMIT 1
        """
        with _store_errors("find pending registration", username=username, email=email):
            return await self._fetch_one(PendingRegistration, sql, (username, email, email))

    async def find_by_approval_token(self, token: str) -> PendingRegistration | None:
        sql = f"SELECT {_PENDING_COLUMNS} FROM pending_registrations WHERE approval_token = %s"
        with _store_errors("find pending registration by approval token"):
            return await self._fetch_one(PendingRegistration, sql, (token,))

    async def find_by_reject_token(self, token: str) -> PendingRegistration | None:
        sql = f"SELECT {_PENDING_COLUMNS} FROM pending_registrations WHERE reject_token = %s"
        with _store_errors("find pending registration by reject token"):
            return await self._fetch_one(PendingRegistration, sql, (token,))

    async def find_all(self, status: PendingStatus) -> list[PendingRegistration]:
        sql = f"""
            SELECT {_PENDING_COLUMNS} FROM pending_registrations
            WHERE status = %s
            ORDER BY created_at DESC, id DESC
        """
        with _store_errors("list pending registrations", status=status.value):
            return await self._fetch_all(PendingRegistration, sql, (status.value,))

    async def approve(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        return await self._review(
            PendingStatus.APPROVED, pending_id, reviewed_by, review_notes, token
        )

    async def reject(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        return await self._review(
            PendingStatus.REJECTED, pending_id, reviewed_by, review_notes, token
        )

    async def _review(
        self,
        status: PendingStatus,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None,
    ) -> PendingRegistration | None:
        # status = 'pending' guard makes the first concurrent reviewer win
        params: list[Any] = [status.value, reviewed_by, review_notes, pending_id]
        token_guard = ""
        if token is not None:
            column = _TOKEN_COLUMN_BY_STATUS[status]
            token_guard = f"AND {column} = %s AND token_expires_at > NOW()"
            params.append(token)
        sql = f"""
            UPDATE pending_registrations
            SET status = %s,
                reviewed_at = NOW(),
                reviewed_by = %s,
                review_notes = %s
            WHERE id = %s AND status = 'pending' {token_guard}
            RETURNING {_PENDING_COLUMNS}
        """
        with _store_errors(
            f"mark pending registration {status.value}",
            pending_id=pending_id,
            reviewed_by=reviewed_by,
        ):
            return await self._fetch_one(PendingRegistration, sql, params)

    async def reset_to_pending(
        self, pending_id: int, password_hash: str, username: str, email: str
    ) -> PendingRegistration | None:
        sql = f"""
            UPDATE pending_registrations
            SET status = 'pending',
                username = %s,
                email = %s,
                password_hash = %s,
                reviewed_at = NULL,
                reviewed_by = NULL,
                review_notes = NULL,
                approval_token = NULL,
                reject_token = NULL,
                token_expires_at = NULL,
                created_at = NOW()
            WHERE id = %s AND status <> 'pending'
            RETURNING {_PENDING_COLUMNS}
        """
        with _store_errors(
            "reset pending registration", pending_id=pending_id, username=username, email=email
        ):
            return await self._fetch_one(
                PendingRegistration, sql, (username, email, password_hash, pending_id)
            )

    async def set_approval_tokens(
        self, pending_id: int, approval_token: str, reject_token: str, expires_at: datetime
    ) -> None:
        sql = """
            UPDATE pending_registrations
            SET approval_token = %s,
                reject_token = %s,
                token_expires_at = %s
            WHERE id = %s
        """
        with _store_errors("set approval tokens", pending_id=pending_id):
            await self._execute(sql, (approval_token, reject_token, expires_at, pending_id))

    async def delete(self, pending_id: int) -> bool:
        sql = "DELETE FROM pending_registrations WHERE id = %s"
        with _store_errors("delete pending registration", pending_id=pending_id):
            return await self._execute(sql, (pending_id,)) > 0


class PostgresUserRepository(_PostgresRepository):
    """
    Implements UserRepository protocol via psycopg3.

    Recovers once from users_pkey violations caused by a users_id_seq that
    fell behind MAX(id), which happens after rows are copied in with
    explicit ids.
    """

    async def create(self, username: str, email: str, password_hash: str) -> User:
        with _store_errors("create user", username=username, email=email):
            try:
                return await self._insert(username, email, password_hash)
            except UniqueViolation as e:
                if e.diag.constraint_name != "users_pkey":
                    raise
                logger.warning(
                    "Users sequence out of sync, resetting and retrying: username=%s", username
                )
                await self._resync_sequence()
                return await self._insert(username, email, password_hash)

    async def _insert(self, username: str, email: str, password_hash: str) -> User:
        sql = f"""
            INSERT INTO users (username, email, password_hash, email_verified, created_at)
            VALUES (%s, %s, %s, FALSE, NOW())
            RETURNING {_USER_COLUMNS}
        """
        row = await self._fetch_one(User, sql, (username, email, password_hash))
        assert row is not None
        return row

    async def _resync_sequence(self) -> None:
        sql = """
            SELECT setval(
                pg_get_serial_sequence('users', 'id'),
                COALESCE((SELECT MAX(id) FROM users), 0) + 1,
                false
            )
        """
        await self._execute(sql, ())
        logger.info("Users sequence reset")

    async def find_by_id(self, user_id: int) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s"
        with _store_errors("find user by id", user_id=user_id):
            return await self._fetch_one(User, sql, (user_id,))

    async def find_by_username_or_email(self, username: str, email: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE username = %s OR email = %s LIMIT 1"
        with _store_errors("find user", username=username, email=email):
            return await self._fetch_one(User, sql, (username, email))

    async def find_by_email(self, email: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s"
        with _store_errors("find user by email", email=email):
            return await self._fetch_one(User, sql, (email,))

    async def set_verification_token(self, user_id: int, token: str, expires_at: datetime) -> None:
        sql = """
            UPDATE users
            SET verification_token = %s, verification_token_expires_at = %s
            WHERE id = %s
        """
        with _store_errors("set verification token", user_id=user_id):
            await self._execute(sql, (token, expires_at, user_id))

    async def find_by_verification_token(self, token: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE verification_token = %s"
        with _store_errors("find user by verification token"):
            return await self._fetch_one(User, sql, (token,))

    async def mark_email_verified(self, user_id: int) -> bool:
        sql = """
            UPDATE users
            SET email_verified = TRUE,
                verification_token = NULL,
                verification_token_expires_at = NULL
            WHERE id = %s AND email_verified = FALSE
        """
        with _store_errors("verify email", user_id=user_id):
            return await self._execute(sql, (user_id,)) > 0

    async def set_password_reset_token(
        self, user_id: int, token: str, expires_at: datetime
    ) -> None:
        sql = """
            UPDATE users
            SET password_reset_token = %s, password_reset_token_expires_at = %s
            WHERE id = %s
        """
        with _store_errors("set password reset token", user_id=user_id):
            await self._execute(sql, (token, expires_at, user_id))

    async def find_by_password_reset_token(self, token: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE password_reset_token = %s"
        with _store_errors("find user by password reset token"):
            return await self._fetch_one(User, sql, (token,))

    async def update_password(
        self, user_id: int, password_hash: str, reset_token: str | None = None
    ) -> bool:
        params: list[Any] = [password_hash, user_id]
        token_guard = ""
        if reset_token is not None:
            token_guard = (
                "AND password_reset_token = %s AND password_reset_token_expires_at > NOW()"
            )
            params.append(reset_token)
        sql = f"""
            UPDATE users
            SET password_hash = %s,
                password_reset_token = NULL,
                password_reset_token_expires_at = NULL
            WHERE id = %s {token_guard}
        """
        with _store_errors("update password", user_id=user_id):
            return await self._execute(sql, params) > 0


class PostgresSettingsRepository(_PostgresRepository):
    """Implements SettingsRepository protocol via psycopg3."""

    async def get(self, key: str, default: str | bool | None = None) -> str | bool | None:
        sql = f"SELECT {_SETTING_COLUMNS} FROM settings WHERE key = %s"
        with _store_errors("get setting", key=key):
            row = await self._fetch_one(Setting, sql, (key,))
        if row is None:
            return default
        return coerce_setting(row.value)

    async def set(
        self,
        key: str,
        value: str | bool,
        description: str | None = None,
        updated_by: int | None = None,
    ) -> Setting:
        sql = f"""
            INSERT INTO settings (key, value, description, updated_by, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value,
                description = COALESCE(EXCLUDED.description, settings.description),
                updated_by = EXCLUDED.updated_by,
                updated_at = NOW()
            RETURNING {_SETTING_COLUMNS}
        """
        with _store_errors("set setting", key=key, updated_by=updated_by):
            row = await self._fetch_one(
                Setting, sql, (key, serialize_setting(value), description, updated_by)
            )
        assert row is not None
        return row

    async def all(self) -> list[Setting]:
        sql = f"SELECT {_SETTING_COLUMNS} FROM settings ORDER BY key"
        with _store_errors("list settings"):
            return await self._fetch_all(Setting, sql, ())


async def run_migrations(pool: AsyncConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 AsyncConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            async with pool.connection() as conn:
                await conn.execute(sql_content)
                await conn.commit()

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
