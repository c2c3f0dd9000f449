"""
Shared fixtures for adversarial tests.

Provides an approval-mode service over the in-memory stores, whose
operations yield to the event loop so asyncio.gather interleaves
concurrent requests the way a connection pool would.
"""

import pytest

from src.adapters.repository.memory import InMemoryUserRepository
from src.domain.approval import ApprovalService
from src.domain.ports import User
from tests.conftest import make_user


@pytest.fixture
async def armed_service(service: ApprovalService, approval_mode: None) -> ApprovalService:
    """Approval service with approval mode on."""
    return service


@pytest.fixture
def reviewer(user_repository: InMemoryUserRepository) -> User:
    return user_repository.add(make_user(user_id=100, is_admin=True))
