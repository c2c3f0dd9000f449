"""
In-memory repository adapters - Process-local implementations of the ports.

Used for local development (STORAGE_BACKEND=memory) and unit tests.
Each operation first yields to the event loop, like a real I/O call would,
then reads and mutates state without further suspension. That makes every
operation atomic while still letting concurrent requests interleave
between operations, which is how races play out against PostgreSQL.

Unique constraints are named after the PostgreSQL ones so the domain can
map violations to fields the same way for both backends.
"""

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from src.domain import pending as transitions
from src.domain.exceptions import AlreadyReviewed, DuplicateKey, DuplicatePending
from src.domain.ports import PendingRegistration, PendingStatus, Setting, User
from src.domain.system_settings import coerce_setting, serialize_setting
from src.domain.tokens import is_expired, tokens_match, utcnow


async def _io() -> None:
    await asyncio.sleep(0)


class InMemoryPendingRegistrationRepository:
    """Implements PendingRegistrationRepository protocol with a dict."""

    def __init__(self) -> None:
        self._rows: dict[int, PendingRegistration] = {}
        self._ids = itertools.count(1)

    def _check_unique(self, pending_id: int | None, username: str, email: str) -> None:
        for row in self._rows.values():
            if row.id == pending_id:
                continue
            if row.username == username:
                raise DuplicateKey("pending_registrations_username_key")
            if row.email == email:
                raise DuplicateKey("pending_registrations_email_key")

    async def create(self, username: str, email: str, password_hash: str) -> PendingRegistration:
        await _io()
        self._check_unique(None, username, email)
        row = PendingRegistration(
            id=next(self._ids),
            username=username,
            email=email,
            password_hash=password_hash,
            status=PendingStatus.PENDING,
            created_at=utcnow(),
        )
        self._rows[row.id] = row
        return replace(row)

    async def find_by_id(self, pending_id: int) -> PendingRegistration | None:
        await _io()
        row = self._rows.get(pending_id)
        return replace(row) if row else None

    async def find_by_username_or_email(
        self, username: str, email: str
    ) -> PendingRegistration | None:
        await _io()
        # An email match wins over a username match, like the SQL ordering
        matches = [row for row in self._rows.values() if row.email == email]
        matches += [row for row in self._rows.values() if row.username == username]
        return replace(matches[0]) if matches else None

    async def find_by_approval_token(self, token: str) -> PendingRegistration | None:
        await _io()
        for row in self._rows.values():
            if token and row.approval_token == token:
                return replace(row)
        return None

    async def find_by_reject_token(self, token: str) -> PendingRegistration | None:
        await _io()
        for row in self._rows.values():
            if token and row.reject_token == token:
                return replace(row)
        return None

    async def find_all(self, status: PendingStatus) -> list[PendingRegistration]:
        await _io()
        rows = [replace(row) for row in self._rows.values() if row.status is status]
        return sorted(rows, key=lambda row: (row.created_at, row.id), reverse=True)

    async def approve(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        return await self._review(transitions.approve, pending_id, reviewed_by, review_notes, token)

    async def reject(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        return await self._review(transitions.reject, pending_id, reviewed_by, review_notes, token)

    async def _review(
        self,
        transition: Callable[..., PendingRegistration],
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None,
    ) -> PendingRegistration | None:
        await _io()
        row = self._rows.get(pending_id)
        if row is None:
            return None
        if token is not None:
            held = row.approval_token if transition is transitions.approve else row.reject_token
            if not tokens_match(held, token) or is_expired(row.token_expires_at):
                return None
        try:
            updated = transition(row, reviewed_by, review_notes, utcnow())
        except AlreadyReviewed:
            return None
        self._rows[pending_id] = updated
        return replace(updated)

    async def reset_to_pending(
        self, pending_id: int, password_hash: str, username: str, email: str
    ) -> PendingRegistration | None:
        await _io()
        row = self._rows.get(pending_id)
        if row is None:
            return None
        try:
            updated = transitions.reset(row, password_hash, username, email, utcnow())
        except DuplicatePending:
            return None
        self._check_unique(pending_id, username, email)
        self._rows[pending_id] = updated
        return replace(updated)

    async def set_approval_tokens(
        self, pending_id: int, approval_token: str, reject_token: str, expires_at: datetime
    ) -> None:
        await _io()
        row = self._rows.get(pending_id)
        if row is not None:
            self._rows[pending_id] = replace(
                row,
                approval_token=approval_token,
                reject_token=reject_token,
                token_expires_at=expires_at,
            )

    async def delete(self, pending_id: int) -> bool:
        await _io()
        return self._rows.pop(pending_id, None) is not None


class InMemoryUserRepository:
    """Implements UserRepository protocol with a dict."""

    def __init__(self) -> None:
        self._rows: dict[int, User] = {}
        self._ids = itertools.count(1)

    def add(self, user: User) -> User:
        """Seed an existing account (admin bootstrap, tests)."""
        self._rows[user.id] = user
        self._ids = itertools.count(max(self._rows) + 1)
        return user

    async def create(self, username: str, email: str, password_hash: str) -> User:
        await _io()
        for row in self._rows.values():
            if row.username == username:
                raise DuplicateKey("users_username_key")
            if row.email == email:
                raise DuplicateKey("users_email_key")
        user = User(
            id=next(self._ids),
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=utcnow(),
        )
        self._rows[user.id] = user
        return replace(user)

    async def find_by_id(self, user_id: int) -> User | None:
        await _io()
        row = self._rows.get(user_id)
        return replace(row) if row else None

    async def find_by_username_or_email(self, username: str, email: str) -> User | None:
        await _io()
        for row in self._rows.values():
            if row.username == username or row.email == email:
                return replace(row)
        return None

    async def find_by_email(self, email: str) -> User | None:
        await _io()
        for row in self._rows.values():
            if row.email == email:
                return replace(row)
        return None

    async def set_verification_token(self, user_id: int, token: str, expires_at: datetime) -> None:
        await _io()
        self._update(user_id, verification_token=token, verification_token_expires_at=expires_at)

    async def find_by_verification_token(self, token: str) -> User | None:
        await _io()
        for row in self._rows.values():
            if token and row.verification_token == token:
                return replace(row)
        return None

    async def mark_email_verified(self, user_id: int) -> bool:
        await _io()
        return self._update(
            user_id,
            email_verified=True,
            verification_token=None,
            verification_token_expires_at=None,
        )

    async def set_password_reset_token(
        self, user_id: int, token: str, expires_at: datetime
    ) -> None:
        await _io()
        self._update(
            user_id, password_reset_token=token, password_reset_token_expires_at=expires_at
        )

    async def find_by_password_reset_token(self, token: str) -> User | None:
        await _io()
        for row in self._rows.values():
            if token and row.password_reset_token == token:
                return replace(row)
        return None

    async def update_password(
        self, user_id: int, password_hash: str, reset_token: str | None = None
    ) -> bool:
        await _io()
        if reset_token is not None:
            row = self._rows.get(user_id)
            if (
                row is None
                or not tokens_match(row.password_reset_token, reset_token)
                or is_expired(row.password_reset_token_expires_at)
            ):
                return False
        return self._update(
            user_id,
            password_hash=password_hash,
            password_reset_token=None,
            password_reset_token_expires_at=None,
        )

    def _update(self, user_id: int, **changes: object) -> bool:
        row = self._rows.get(user_id)
        if row is None:
            return False
        self._rows[user_id] = replace(row, **changes)
        return True


class InMemorySettingsRepository:
    """Implements SettingsRepository protocol with a dict."""

    def __init__(self) -> None:
        self._rows: dict[str, Setting] = {}

    async def get(self, key: str, default: str | bool | None = None) -> str | bool | None:
        await _io()
        row = self._rows.get(key)
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
        await _io()
        previous = self._rows.get(key)
        setting = Setting(
            key=key,
            value=serialize_setting(value),
            description=description or (previous.description if previous else None),
            updated_by=updated_by,
            updated_at=utcnow(),
        )
        self._rows[key] = setting
        return replace(setting)

    async def all(self) -> list[Setting]:
        await _io()
        return [replace(self._rows[key]) for key in sorted(self._rows)]
