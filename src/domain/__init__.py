"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic for the moderated
registration workflow. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .accounts import AccountService
from .approval import ApprovalOutcome, ApprovalService, RegistrationOutcome
from .exceptions import (
    AlreadyReviewed,
    ApprovalError,
    Conflict,
    DuplicateKey,
    DuplicatePending,
    EmailAlreadyVerified,
    EmailNotVerified,
    ErrorKind,
    InvalidOrExpiredToken,
    NotFound,
    NotificationFailed,
    StoreFailure,
)
from .ports import (
    Notifier,
    PendingRegistration,
    PendingRegistrationRepository,
    PendingStatus,
    Setting,
    SettingsRepository,
    User,
    UserRepository,
)
from .system_settings import SystemSettings

__all__ = [
    "AccountService",
    "AlreadyReviewed",
    "ApprovalError",
    "ApprovalOutcome",
    "ApprovalService",
    "Conflict",
    "DuplicateKey",
    "DuplicatePending",
    "EmailAlreadyVerified",
    "EmailNotVerified",
    "ErrorKind",
    "InvalidOrExpiredToken",
    "NotFound",
    "NotificationFailed",
    "Notifier",
    "PendingRegistration",
    "PendingRegistrationRepository",
    "PendingStatus",
    "RegistrationOutcome",
    "Setting",
    "SettingsRepository",
    "StoreFailure",
    "SystemSettings",
    "User",
    "UserRepository",
]
