"""
Unit tests for domain ports and exceptions.

Tests verify:
- Records and enums are properly defined
- Exceptions carry their error kind and messages
- Domain purity (zero framework imports)
"""

import subprocess
from enum import Enum
from pathlib import Path

import pytest

from src.domain.exceptions import (
    AlreadyReviewed,
    ApprovalError,
    Conflict,
    DuplicateKey,
    DuplicatePending,
    EmailAlreadyVerified,
    ErrorKind,
    InvalidOrExpiredToken,
    NotFound,
    NotificationFailed,
    StoreFailure,
)
from src.domain.ports import PendingRegistration, PendingStatus, User
from src.domain.tokens import utcnow

DOMAIN_DIR = Path(__file__).resolve().parents[2] / "src" / "domain"


class TestPendingStatusEnum:
    """Tests for PendingStatus enum."""

    def test_pending_status_is_enum(self) -> None:
        assert issubclass(PendingStatus, Enum)

    def test_pending_status_values(self) -> None:
        assert [status.value for status in PendingStatus] == ["pending", "approved", "rejected"]

    def test_pending_status_compares_to_string(self) -> None:
        """str-based enum compares equal to its database value."""
        assert PendingStatus.APPROVED == "approved"


class TestRecords:
    """Tests for domain records."""

    def test_pending_registration_coerces_status_string(self) -> None:
        """Rows loaded from the database carry plain strings."""
        record = PendingRegistration(
            id=1,
            username="alice",
            email="alice@x.com",
            password_hash="hash",
            status="rejected",
            created_at=utcnow(),
        )
        assert record.status is PendingStatus.REJECTED

    def test_pending_registration_defaults(self) -> None:
        record = PendingRegistration(
            id=1,
            username="alice",
            email="alice@x.com",
            password_hash="hash",
            status=PendingStatus.PENDING,
            created_at=utcnow(),
        )
        assert record.reviewed_at is None
        assert record.approval_token is None
        assert record.token_expires_at is None

    @pytest.mark.parametrize(
        ("is_admin", "is_manager", "expected"),
        [(False, False, False), (True, False, True), (False, True, True)],
    )
    def test_user_can_review(self, is_admin: bool, is_manager: bool, expected: bool) -> None:
        user = User(
            id=1,
            username="u",
            email="u@x.com",
            password_hash="hash",
            created_at=utcnow(),
            is_admin=is_admin,
            is_manager=is_manager,
        )
        assert user.can_review is expected

    def test_user_starts_unverified(self) -> None:
        user = User(id=1, username="u", email="u@x.com", password_hash="h", created_at=utcnow())
        assert user.email_verified is False


class TestExceptions:
    """Tests for domain exceptions."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (DuplicatePending(), ErrorKind.DUPLICATE_PENDING),
            (AlreadyReviewed(), ErrorKind.ALREADY_REVIEWED),
            (NotFound(), ErrorKind.NOT_FOUND),
            (InvalidOrExpiredToken(), ErrorKind.INVALID_OR_EXPIRED_TOKEN),
            (Conflict(), ErrorKind.CONFLICT),
            (StoreFailure(), ErrorKind.STORE_FAILURE),
            (NotificationFailed(), ErrorKind.NOTIFICATION_FAILURE),
        ],
    )
    def test_error_kind(self, error: ApprovalError, kind: ErrorKind) -> None:
        assert isinstance(error, ApprovalError)
        assert error.kind is kind

    def test_duplicate_pending_field_messages(self) -> None:
        assert "email address" in DuplicatePending("email").message
        assert "username" in DuplicatePending("username").message
        assert DuplicatePending("bogus").message == DuplicatePending().message

    def test_duplicate_key_is_store_failure(self) -> None:
        error = DuplicateKey("users_email_key")
        assert isinstance(error, StoreFailure)
        assert error.constraint == "users_email_key"
        assert "users_email_key" in str(error)

    def test_email_already_verified_is_conflict(self) -> None:
        assert isinstance(EmailAlreadyVerified(), Conflict)

    def test_custom_message_overrides_default(self) -> None:
        assert Conflict("taken").message == "taken"
        assert str(NotFound()) == "Pending user not found"


class TestDomainPurity:
    """Domain layer must not depend on web, validation or database frameworks."""

    @pytest.mark.parametrize(
        "pattern", ["from fastapi", "import fastapi", "from pydantic", "from psycopg", "import psycopg"]
    )
    def test_no_framework_imports_in_domain(self, pattern: str) -> None:
        result = subprocess.run(
            ["grep", "-r", pattern, str(DOMAIN_DIR)],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Framework import found: {result.stdout}"
