"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- The anyio backend used by async tests
- In-memory repositories and a recording notifier
- Approval and account services wired against them
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from src.adapters.repository.memory import (
    InMemoryPendingRegistrationRepository,
    InMemorySettingsRepository,
    InMemoryUserRepository,
)
from src.domain.accounts import AccountService
from src.domain.approval import ApprovalService
from src.domain.passwords import hash_password
from src.domain.ports import User
from src.domain.system_settings import APPROVAL_ENABLED_KEY, NOTIFICATION_EMAIL_KEY, SystemSettings
from src.domain.tokens import utcnow

# Lowest cost bcrypt accepts; keeps hashing fast in tests
TEST_BCRYPT_COST = 4

REVIEWER_EMAIL = "reviewers@example.com"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def pending_repository() -> InMemoryPendingRegistrationRepository:
    return InMemoryPendingRegistrationRepository()


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def settings_repository() -> InMemorySettingsRepository:
    """Empty settings store, so approval mode starts off."""
    return InMemorySettingsRepository()


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier double recording every send."""
    return AsyncMock()


@pytest.fixture
def system_settings(settings_repository: InMemorySettingsRepository) -> SystemSettings:
    return SystemSettings(repository=settings_repository)


@pytest.fixture
async def approval_mode(settings_repository: InMemorySettingsRepository) -> None:
    """Turn approval mode on and configure the reviewer address."""
    await settings_repository.set(APPROVAL_ENABLED_KEY, True)
    await settings_repository.set(NOTIFICATION_EMAIL_KEY, REVIEWER_EMAIL)


@pytest.fixture
def service(
    pending_repository: InMemoryPendingRegistrationRepository,
    user_repository: InMemoryUserRepository,
    system_settings: SystemSettings,
    notifier: AsyncMock,
) -> ApprovalService:
    return ApprovalService(
        pending_repository=pending_repository,
        user_repository=user_repository,
        settings=system_settings,
        notifier=notifier,
        bcrypt_cost=TEST_BCRYPT_COST,
    )


@pytest.fixture
def account_service(user_repository: InMemoryUserRepository, notifier: AsyncMock) -> AccountService:
    return AccountService(
        user_repository=user_repository,
        notifier=notifier,
        bcrypt_cost=TEST_BCRYPT_COST,
        password_reset_token_ttl=timedelta(hours=1),
    )


def make_user(
    user_id: int = 1,
    username: str = "admin",
    email: str = "admin@example.com",
    password: str = "adminpass123",
    **fields: object,
) -> User:
    """Build a User with a real bcrypt hash of the given password."""
    return User(
        id=user_id,
        username=username,
        email=email,
        password_hash=hash_password(password, TEST_BCRYPT_COST),
        created_at=utcnow(),
        **fields,
    )
