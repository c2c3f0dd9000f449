"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the domain works with and the interfaces
(ports) it requires from infrastructure. Adapters implement these protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol


class PendingStatus(str, Enum):
    """
    Lifecycle states of a pending registration.

    State Transitions:
    - PENDING -> APPROVED (reviewer approves, account is promoted)
    - PENDING -> REJECTED (reviewer rejects)
    - APPROVED -> PENDING (fresh registration resets the same row)
    - REJECTED -> PENDING (fresh registration resets the same row)

    APPROVED and REJECTED are soft-terminal: the row can be recycled,
    but the promotion to a user account is never undone.

    Note: Review transitions are guarded at the repository level via
    conditional updates on status = 'pending'.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class PendingRegistration:
    """A registration awaiting (or having received) moderation."""

    id: int
    username: str
    email: str
    password_hash: str
    status: PendingStatus
    created_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: int | None = None
    review_notes: str | None = None
    approval_token: str | None = None
    reject_token: str | None = None
    token_expires_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = PendingStatus(self.status)


@dataclass
class User:
    """A materialized account."""

    id: int
    username: str
    email: str
    password_hash: str
    created_at: datetime
    email_verified: bool = False
    is_admin: bool = False
    is_manager: bool = False
    verification_token: str | None = None
    verification_token_expires_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_token_expires_at: datetime | None = None

    @property
    def can_review(self) -> bool:
        return self.is_admin or self.is_manager


@dataclass
class Setting:
    key: str
    value: str
    description: str | None = None
    updated_by: int | None = None
    updated_at: datetime | None = None


class PendingRegistrationRepository(Protocol):
    """Port interface for pending registration persistence."""

    async def create(self, username: str, email: str, password_hash: str) -> PendingRegistration:
        """
        Insert a new PENDING registration.

        Raises:
            DuplicateKey: username or email already used by another row
        """
        ...

    async def find_by_id(self, pending_id: int) -> PendingRegistration | None: ...

    async def find_by_username_or_email(
        self, username: str, email: str
    ) -> PendingRegistration | None: ...

    async def find_by_approval_token(self, token: str) -> PendingRegistration | None:
        """Return the row holding this approval token, whatever its state or expiry."""
        ...

    async def find_by_reject_token(self, token: str) -> PendingRegistration | None:
        """Return the row holding this reject token, whatever its state or expiry."""
        ...

    async def find_all(self, status: PendingStatus) -> list[PendingRegistration]:
        """Rows in the given status, newest first."""
        ...

    async def approve(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        """
        Transition PENDING -> APPROVED.

        When token is given, the row must still hold it as its unexpired
        approval_token at the moment of the update.

        Returns:
            Updated record, or None if the row is missing, no longer PENDING,
            or no longer matches the token
        """
        ...

    async def reject(
        self,
        pending_id: int,
        reviewed_by: int | None,
        review_notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration | None:
        """
        Transition PENDING -> REJECTED.

        When token is given, the row must still hold it as its unexpired
        reject_token at the moment of the update.

        Returns:
            Updated record, or None if the row is missing, no longer PENDING,
            or no longer matches the token
        """
        ...

    async def reset_to_pending(
        self, pending_id: int, password_hash: str, username: str, email: str
    ) -> PendingRegistration | None:
        """
        Start a new epoch on a reviewed row: back to PENDING with new credentials.

        Returns:
            Updated record, or None if the row is missing or already PENDING

        Raises:
            DuplicateKey: new username or email collides with another row
        """
        ...

    async def set_approval_tokens(
        self, pending_id: int, approval_token: str, reject_token: str, expires_at: datetime
    ) -> None: ...

    async def delete(self, pending_id: int) -> bool: ...


class UserRepository(Protocol):
    """Port interface for user account persistence."""

    async def create(self, username: str, email: str, password_hash: str) -> User:
        """
        Insert a new unverified user.

        Raises:
            DuplicateKey: username or email already taken
        """
        ...

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def find_by_username_or_email(self, username: str, email: str) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def set_verification_token(self, user_id: int, token: str, expires_at: datetime) -> None: ...

    async def find_by_verification_token(self, token: str) -> User | None: ...

    async def mark_email_verified(self, user_id: int) -> bool:
        """Set email_verified and clear the verification token."""
        ...

    async def set_password_reset_token(
        self, user_id: int, token: str, expires_at: datetime
    ) -> None: ...

    async def find_by_password_reset_token(self, token: str) -> User | None: ...

    async def update_password(
        self, user_id: int, password_hash: str, reset_token: str | None = None
    ) -> bool:
        """
        Replace the hash and clear any password reset token.

        When reset_token is given, the update only applies while the user
        still holds it unexpired, so a reset token is spent exactly once.
        """
        ...


class SettingsRepository(Protocol):
    """Port interface for the key-value settings store."""

    async def get(self, key: str, default: str | bool | None = None) -> str | bool | None:
        """Stored value with "true"/"false" coerced to bool, or default when absent."""
        ...

    async def set(
        self,
        key: str,
        value: str | bool,
        description: str | None = None,
        updated_by: int | None = None,
    ) -> Setting: ...

    async def all(self) -> list[Setting]: ...


class Notifier(Protocol):
    """Port interface for transactional email."""

    async def send_approval_notification(
        self,
        to_addresses: list[str],
        registration: PendingRegistration,
        approval_token: str,
        reject_token: str,
    ) -> None: ...

    async def send_new_user_notification(self, to_addresses: list[str], user: User) -> None:
        """Tell reviewers an account was created without approval."""
        ...

    async def send_verification_email(self, email: str, username: str, token: str) -> None: ...

    async def send_rejection_email(self, email: str, username: str) -> None: ...

    async def send_welcome_email(self, email: str, username: str) -> None: ...

    async def send_password_reset_email(self, email: str, username: str, token: str) -> None: ...
