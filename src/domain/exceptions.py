"""
Domain exceptions - Semantic error types for the approval workflow.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Every exception carries an ErrorKind so callers can branch on the
category without importing each class.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Categories of approval workflow failures."""

    DUPLICATE_PENDING = "duplicate_pending"
    ALREADY_REVIEWED = "already_reviewed"
    NOT_FOUND = "not_found"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    CONFLICT = "conflict"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    STORE_FAILURE = "store_failure"
    NOTIFICATION_FAILURE = "notification_failure"


class ApprovalError(Exception):
    """Base class for approval workflow domain errors."""

    kind: ErrorKind = ErrorKind.CONFLICT
    default_message = "Approval workflow error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicatePending(ApprovalError):
    """A registration for this username or email is already awaiting review."""

    kind = ErrorKind.DUPLICATE_PENDING

    _MESSAGES = {
        "email": (
            "A registration request with this email address already exists. "
            "Please wait for approval or contact support."
        ),
        "username": (
            "A registration request with this username already exists. "
            "Please wait for approval or contact support."
        ),
        None: (
            "A registration request for this username or email already exists. "
            "Please wait for approval or contact support."
        ),
    }

    def __init__(self, field: str | None = None) -> None:
        self.field = field
        super().__init__(self._MESSAGES.get(field, self._MESSAGES[None]))


class AlreadyReviewed(ApprovalError):
    """Registration is no longer pending."""

    kind = ErrorKind.ALREADY_REVIEWED
    default_message = "User has already been reviewed"


class NotFound(ApprovalError):
    """Unknown pending registration."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Pending user not found"


class InvalidOrExpiredToken(ApprovalError):
    """Token unknown, expired, or bound to a subject in the wrong state."""

    kind = ErrorKind.INVALID_OR_EXPIRED_TOKEN
    default_message = "Invalid or expired token"


class Conflict(ApprovalError):
    """Target user account already exists."""

    kind = ErrorKind.CONFLICT
    default_message = "A user with this username or email already exists"


class EmailAlreadyVerified(Conflict):
    default_message = "Email already verified"


class EmailNotVerified(ApprovalError):
    kind = ErrorKind.EMAIL_NOT_VERIFIED
    default_message = "Email not verified"


class StoreFailure(ApprovalError):
    """Opaque persistence failure raised by repository adapters."""

    kind = ErrorKind.STORE_FAILURE
    default_message = "Storage operation failed"


class DuplicateKey(StoreFailure):
    """A uniqueness constraint fired; constraint holds its name when known."""

    def __init__(self, constraint: str | None = None) -> None:
        self.constraint = constraint
        super().__init__(f"Duplicate key violates constraint {constraint or 'unknown'}")


class NotificationFailed(ApprovalError):
    """Email delivery failed. Services log this and carry on."""

    kind = ErrorKind.NOTIFICATION_FAILURE
    default_message = "Notification delivery failed"
