"""
Adversarial tests for race condition attack prevention.

Verifies that concurrent operations on the same registration are settled
by the store instead of by in-process locks, preventing attackers from:
- Parking two registrations for the same email
- Promoting one registration into two accounts
- Mixing approve and reject outcomes on one record

Security rationale:
- Two requests can both pass a "does it exist?" check before either writes
- Uniqueness constraints and conditional updates make the write itself the
  arbiter, so exactly one request wins and the rest get a domain error
"""

import asyncio

import pytest

from src.adapters.repository.memory import (
    InMemoryPendingRegistrationRepository,
    InMemoryUserRepository,
)
from src.domain.approval import ApprovalService
from src.domain.exceptions import AlreadyReviewed, DuplicatePending
from src.domain.ports import PendingStatus, User

# Apply adversarial marker to all tests in this module
pytestmark = [pytest.mark.adversarial, pytest.mark.anyio]

NUM_ATTACKERS = 5


class TestRaceConditionAttacks:
    """
    Adversarial tests simulating race condition attacks.

    Each test fires several requests at once with asyncio.gather and
    checks that exactly one of them changed state.
    """

    async def test_concurrent_registration_exactly_one_succeeds(
        self,
        armed_service: ApprovalService,
        pending_repository: InMemoryPendingRegistrationRepository,
    ) -> None:
        """
        Attack scenario: rapid duplicate sign-ups for one email.

        Expected defense: the email uniqueness constraint lets one
        registration through; the rest fail with DuplicatePending.
        """
        results = await asyncio.gather(
            *(
                armed_service.register(f"attacker{i}", "victim@x.com", "password123")
                for i in range(NUM_ATTACKERS)
            ),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(results) - len(failures) == 1
        assert all(isinstance(f, DuplicatePending) for f in failures)
        assert all(f.field == "email" for f in failures)
        assert len(pending_repository._rows) == 1

    async def test_concurrent_reregistration_after_reject(
        self,
        armed_service: ApprovalService,
        pending_repository: InMemoryPendingRegistrationRepository,
        reviewer: User,
    ) -> None:
        """
        Attack scenario: racing resets of one rejected record.

        Expected defense: the reset only matches non-pending rows, so one
        request starts the new epoch and the others see DuplicatePending.
        """
        outcome = await armed_service.register("alice", "alice@x.com", "password123")
        await armed_service.reject_by_admin(outcome.id, reviewer.id)

        results = await asyncio.gather(
            *(armed_service.register("alice", "alice@x.com", "password123") for _ in range(NUM_ATTACKERS)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(results) - len(failures) == 1
        assert all(isinstance(f, DuplicatePending) for f in failures)
        record = await armed_service.get_by_id(outcome.id)
        assert record.status is PendingStatus.PENDING
        assert len(pending_repository._rows) == 1

    async def test_concurrent_admin_approval_one_user(
        self,
        armed_service: ApprovalService,
        user_repository: InMemoryUserRepository,
        reviewer: User,
    ) -> None:
        """Two reviewers approve the same record at once: one account, one AlreadyReviewed."""
        outcome = await armed_service.register("alice", "alice@x.com", "password123")

        results = await asyncio.gather(
            armed_service.approve_by_admin(outcome.id, reviewer.id),
            armed_service.approve_by_admin(outcome.id, reviewer.id),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyReviewed)
        promoted = [u for u in user_repository._rows.values() if u.email == "alice@x.com"]
        assert len(promoted) == 1

    async def test_approve_link_races_reject_link(
        self,
        armed_service: ApprovalService,
        pending_repository: InMemoryPendingRegistrationRepository,
        user_repository: InMemoryUserRepository,
    ) -> None:
        """Approve and reject links clicked together: the first transition wins."""
        outcome = await armed_service.register("alice", "alice@x.com", "password123")
        record = await pending_repository.find_by_id(outcome.id)

        results = await asyncio.gather(
            armed_service.approve_by_token(record.approval_token),
            armed_service.reject_by_token(record.reject_token),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyReviewed)

        final = await pending_repository.find_by_id(outcome.id)
        promoted = await user_repository.find_by_email("alice@x.com")
        if final.status is PendingStatus.APPROVED:
            assert promoted is not None
        else:
            assert final.status is PendingStatus.REJECTED
            assert promoted is None

    async def test_repeated_link_clicks_promote_once(
        self,
        armed_service: ApprovalService,
        pending_repository: InMemoryPendingRegistrationRepository,
        user_repository: InMemoryUserRepository,
    ) -> None:
        """A link opened in several tabs at once promotes the applicant once."""
        outcome = await armed_service.register("alice", "alice@x.com", "password123")
        record = await pending_repository.find_by_id(outcome.id)

        results = await asyncio.gather(
            *(armed_service.approve_by_token(record.approval_token) for _ in range(NUM_ATTACKERS)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(results) - len(failures) == 1
        assert all(isinstance(f, AlreadyReviewed) for f in failures)
        assert len(user_repository._rows) == 1
