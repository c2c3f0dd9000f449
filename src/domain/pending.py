"""
Pending registration state machine.

Transitions are pure functions from one record to the next; repositories
apply them atomically and the approval service decides which one to run.

    PENDING  --approve-->  APPROVED
    PENDING  --reject--->  REJECTED
    APPROVED --reset---->  PENDING   (new epoch, same id)
    REJECTED --reset---->  PENDING   (new epoch, same id)

A reset replaces the credentials, refreshes created_at and clears review
metadata and the token pair.
"""

from dataclasses import replace
from datetime import datetime

from .exceptions import AlreadyReviewed, DuplicatePending
from .ports import PendingRegistration, PendingStatus


def ensure_pending(record: PendingRegistration) -> None:
    """Raise AlreadyReviewed unless the record is awaiting review."""
    if record.status is not PendingStatus.PENDING:
        raise AlreadyReviewed()


def ensure_resettable(record: PendingRegistration, username: str, email: str) -> None:
    """Raise DuplicatePending if the record still blocks a new registration."""
    if record.status is PendingStatus.PENDING:
        raise DuplicatePending(conflicting_field(record, username, email))


def conflicting_field(record: PendingRegistration, username: str, email: str) -> str | None:
    """Name the field that made a lookup by username or email match."""
    if record.email == email:
        return "email"
    if record.username == username:
        return "username"
    return None


def approve(
    record: PendingRegistration, reviewed_by: int | None, notes: str | None, now: datetime
) -> PendingRegistration:
    ensure_pending(record)
    return replace(
        record,
        status=PendingStatus.APPROVED,
        reviewed_at=now,
        reviewed_by=reviewed_by,
        review_notes=notes,
    )


def reject(
    record: PendingRegistration, reviewed_by: int | None, notes: str | None, now: datetime
) -> PendingRegistration:
    ensure_pending(record)
    return replace(
        record,
        status=PendingStatus.REJECTED,
        reviewed_at=now,
        reviewed_by=reviewed_by,
        review_notes=notes,
    )


def reset(
    record: PendingRegistration, password_hash: str, username: str, email: str, now: datetime
) -> PendingRegistration:
    """Start a new epoch on a reviewed record."""
    ensure_resettable(record, username, email)
    return replace(
        record,
        username=username,
        email=email,
        password_hash=password_hash,
        status=PendingStatus.PENDING,
        created_at=now,
        reviewed_at=None,
        reviewed_by=None,
        review_notes=None,
        approval_token=None,
        reject_token=None,
        token_expires_at=None,
    )
