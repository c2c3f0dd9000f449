"""
Approval workflow domain service - pending registration state machine.

This module contains the core business logic for moderated sign-up:
registration, reviewer notification, approval and rejection from two entry
points (admin API and one-click email links), and promotion of approved
registrations into user accounts.

Pending Registration State Machine
==================================

States:
- PENDING: Awaiting review (entered on registration or on reset)
- APPROVED: Reviewer approved; a user account has been promoted
- REJECTED: Reviewer rejected; the user store is untouched

Valid Transitions:
    PENDING  -> APPROVED  (approve_by_admin / approve_by_token)
    PENDING  -> REJECTED  (reject_by_admin / reject_by_token)
    APPROVED -> PENDING   (register() resets the row, new epoch)
    REJECTED -> PENDING   (register() resets the row, new epoch)

Both entry points of a review share one transition method, so admin and
email paths cannot drift apart. Concurrent reviews are settled by the
repository's conditional update on status = 'pending', which for email
links also requires the row to still hold the unexpired token; concurrent
registrations by the store's uniqueness constraints.

Notification is best-effort throughout: a failed email is logged and the
completed transition stands.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NoReturn

from .exceptions import (
    AlreadyReviewed,
    Conflict,
    DuplicateKey,
    DuplicatePending,
    InvalidOrExpiredToken,
    NotFound,
)
from .notifications import deliver
from .passwords import hash_password
from .pending import conflicting_field, ensure_pending, ensure_resettable
from .ports import (
    Notifier,
    PendingRegistration,
    PendingRegistrationRepository,
    PendingStatus,
    User,
    UserRepository,
)
from .system_settings import SystemSettings
from .tokens import ApprovalTokenPair, generate_token, is_expired, token_preview, tokens_match, utcnow

logger = logging.getLogger(__name__)

APPROVAL_TOKEN_TTL = timedelta(days=7)
VERIFICATION_TOKEN_TTL = timedelta(hours=24)

EMAIL_APPROVAL_NOTE = "Approved via email"
EMAIL_REJECTION_NOTE = "Rejected via email"


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase."""
    return email.strip().lower()


def field_for_constraint(constraint: str | None) -> str | None:
    """Map a unique constraint name such as pending_registrations_email_key to its field."""
    if not constraint:
        return None
    if "email" in constraint:
        return "email"
    if "username" in constraint:
        return "username"
    return None


@dataclass
class RegistrationOutcome:
    id: int
    username: str
    email: str
    created_at: datetime
    requires_approval: bool


@dataclass
class ApprovalOutcome:
    registration: PendingRegistration
    user: User


@dataclass
class ApprovalService:
    """
    Domain service for moderated registration.

    Orchestrates the pending registration lifecycle and the promotion of
    approved registrations into the user store.
    """

    pending_repository: PendingRegistrationRepository
    user_repository: UserRepository
    settings: SystemSettings
    notifier: Notifier
    bcrypt_cost: int = 10
    approval_token_ttl: timedelta = APPROVAL_TOKEN_TTL
    verification_token_ttl: timedelta = VERIFICATION_TOKEN_TTL

    async def register(self, username: str, email: str, password: str) -> RegistrationOutcome:
        """
        Register a new applicant.

        With approval mode on, the applicant is parked as a pending
        registration and reviewers are emailed one-click action links.
        Otherwise the account is created immediately and must verify its
        email address.

        Raises:
            Conflict: username or email already belongs to a user
            DuplicatePending: a registration is already awaiting review
        """
        username = username.strip()
        email = normalize_email(email)

        existing_user = await self.user_repository.find_by_username_or_email(username, email)
        if existing_user is not None:
            logger.warning(
                "Registration attempt with existing credentials: username=%s email=%s",
                username,
                email,
            )
            raise Conflict("Username or email already exists")

        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_cost)

        if not await self.settings.approval_enabled():
            return await self._register_directly(username, email, password_hash)

        registration = await self._claim(username, email, password_hash)
        logger.info(
            "Pending user created (approval mode): pending_id=%s username=%s",
            registration.id,
            registration.username,
        )

        pair = await self._issue_approval_tokens(registration.id)
        await self._notify_reviewers(registration, pair)

        return RegistrationOutcome(
            id=registration.id,
            username=registration.username,
            email=registration.email,
            created_at=registration.created_at,
            requires_approval=True,
        )

    async def approve_by_admin(
        self, pending_id: int, reviewer_id: int, notes: str | None = None
    ) -> ApprovalOutcome:
        """
        Approve from the admin portal.

        Raises:
            NotFound: unknown pending id
            AlreadyReviewed: registration is no longer pending
            Conflict: a user with the username or email already exists
        """
        record = await self.get_by_id(pending_id)
        return await self._approve(record, reviewer_id, notes)

    async def approve_by_token(self, token: str) -> ApprovalOutcome:
        """
        Approve from the one-click email link.

        Raises:
            InvalidOrExpiredToken: token unknown or past its expiry
            AlreadyReviewed: link already used (or the other link was)
            Conflict: a user with the username or email already exists
        """
        record = await self._redeem(
            token, await self.pending_repository.find_by_approval_token(token), "approval_token"
        )
        return await self._approve(record, None, EMAIL_APPROVAL_NOTE, token)

    async def reject_by_admin(
        self, pending_id: int, reviewer_id: int, notes: str | None = None
    ) -> PendingRegistration:
        record = await self.get_by_id(pending_id)
        return await self._reject(record, reviewer_id, notes)

    async def reject_by_token(self, token: str) -> PendingRegistration:
        record = await self._redeem(
            token, await self.pending_repository.find_by_reject_token(token), "reject_token"
        )
        return await self._reject(record, None, EMAIL_REJECTION_NOTE, token)

    async def resend_notification(self, pending_id: int) -> bool:
        """
        Email reviewers again about a pending registration.

        The token pair is regenerated only when missing or expired.

        Returns:
            True if the notifier accepted the message
        """
        record = await self.get_by_id(pending_id)
        ensure_pending(record)

        if (
            record.approval_token
            and record.reject_token
            and not is_expired(record.token_expires_at)
        ):
            pair = ApprovalTokenPair(
                approval_token=record.approval_token,
                reject_token=record.reject_token,
                expires_at=record.token_expires_at,
            )
        else:
            logger.info("Regenerating approval tokens: pending_id=%s", record.id)
            pair = await self._issue_approval_tokens(record.id)

        return await self._notify_reviewers(record, pair)

    async def list_pending(
        self, status: PendingStatus = PendingStatus.PENDING
    ) -> list[PendingRegistration]:
        return await self.pending_repository.find_all(status)

    async def get_by_id(self, pending_id: int) -> PendingRegistration:
        record = await self.pending_repository.find_by_id(pending_id)
        if record is None:
            raise NotFound()
        return record

    async def remove(self, pending_id: int) -> None:
        """Delete a reviewed registration once it is no longer needed."""
        record = await self.get_by_id(pending_id)
        if record.status is PendingStatus.PENDING:
            raise Conflict("Pending registrations must be reviewed before removal")
        await self.pending_repository.delete(record.id)
        logger.info("Pending user removed: pending_id=%s status=%s", record.id, record.status.value)

    async def _register_directly(
        self, username: str, email: str, password_hash: str
    ) -> RegistrationOutcome:
        try:
            user = await self.user_repository.create(username, email, password_hash)
        except DuplicateKey as e:
            logger.warning(
                "Duplicate user registration attempt: username=%s email=%s constraint=%s",
                username,
                email,
                e.constraint,
            )
            raise Conflict("Username or email already exists") from e

        await self._send_verification(user)
        await self._notify_new_user(user)
        logger.info("User registered successfully: user_id=%s username=%s", user.id, user.username)
        return RegistrationOutcome(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            requires_approval=False,
        )

    async def _claim(self, username: str, email: str, password_hash: str) -> PendingRegistration:
        """Create a pending registration, or reset a reviewed one for a new epoch."""
        existing = await self.pending_repository.find_by_username_or_email(username, email)

        if existing is not None:
            ensure_resettable(existing, username, email)
            logger.info(
                "Re-registration for %s pending user: pending_id=%s old_username=%s username=%s",
                existing.status.value,
                existing.id,
                existing.username,
                username,
            )
            try:
                registration = await self.pending_repository.reset_to_pending(
                    existing.id, password_hash, username, email
                )
            except DuplicateKey as e:
                raise DuplicatePending(field_for_constraint(e.constraint)) from e
            if registration is None:
                # Lost the race to another registration for the same row
                raise DuplicatePending(conflicting_field(existing, username, email))
            return registration

        try:
            return await self.pending_repository.create(username, email, password_hash)
        except DuplicateKey as e:
            logger.warning(
                "Duplicate pending user registration attempt: username=%s email=%s constraint=%s",
                username,
                email,
                e.constraint,
            )
            raise DuplicatePending(field_for_constraint(e.constraint)) from e

    async def _redeem(
        self, token: str, record: PendingRegistration | None, attribute: str
    ) -> PendingRegistration:
        """Check existence and expiry of an email action token."""
        if (
            record is None
            or not tokens_match(getattr(record, attribute), token)
            or is_expired(record.token_expires_at)
        ):
            logger.warning("Invalid or expired %s: token=%s", attribute, token_preview(token))
            raise InvalidOrExpiredToken()
        return record

    async def _explain_lost_transition(
        self, pending_id: int, token: str | None, attribute: str
    ) -> NoReturn:
        """Raise the error for a review update that matched no row."""
        if token is not None:
            # The row may have started a new epoch since the link was looked up
            await self._redeem(token, await self.pending_repository.find_by_id(pending_id), attribute)
        raise AlreadyReviewed()

    async def _approve(
        self,
        record: PendingRegistration,
        reviewer_id: int | None,
        notes: str | None,
        token: str | None = None,
    ) -> ApprovalOutcome:
        ensure_pending(record)

        # Must run before the transition so a conflict leaves the record retryable
        existing_user = await self.user_repository.find_by_username_or_email(
            record.username, record.email
        )
        if existing_user is not None:
            # A concurrent reviewer may have promoted this very record
            current = await self.pending_repository.find_by_id(record.id)
            if current is not None:
                ensure_pending(current)
            logger.warning(
                "Approval blocked by existing user: pending_id=%s user_id=%s",
                record.id,
                existing_user.id,
            )
            raise Conflict()

        approved = await self.pending_repository.approve(record.id, reviewer_id, notes, token)
        if approved is None:
            await self._explain_lost_transition(record.id, token, "approval_token")

        try:
            user = await self.user_repository.create(
                approved.username, approved.email, approved.password_hash
            )
        except DuplicateKey as e:
            logger.error(
                "Promotion failed after approval: pending_id=%s constraint=%s",
                approved.id,
                e.constraint,
            )
            raise Conflict() from e

        await self._send_verification(user)
        logger.info(
            "Pending user approved: pending_id=%s user_id=%s reviewed_by=%s",
            approved.id,
            user.id,
            reviewer_id,
        )
        return ApprovalOutcome(registration=approved, user=user)

    async def _reject(
        self,
        record: PendingRegistration,
        reviewer_id: int | None,
        notes: str | None,
        token: str | None = None,
    ) -> PendingRegistration:
        ensure_pending(record)

        rejected = await self.pending_repository.reject(record.id, reviewer_id, notes, token)
        if rejected is None:
            await self._explain_lost_transition(record.id, token, "reject_token")

        logger.info(
            "Pending user rejected: pending_id=%s reviewed_by=%s", rejected.id, reviewer_id
        )
        await deliver(
            "rejection email",
            self.notifier.send_rejection_email(rejected.email, rejected.username),
            recipient=rejected.email,
            subject_id=rejected.id,
        )
        return rejected

    async def _issue_approval_tokens(self, pending_id: int) -> ApprovalTokenPair:
        pair = ApprovalTokenPair.issue(self.approval_token_ttl)
        await self.pending_repository.set_approval_tokens(
            pending_id, pair.approval_token, pair.reject_token, pair.expires_at
        )
        return pair

    async def _notify_reviewers(
        self, registration: PendingRegistration, pair: ApprovalTokenPair
    ) -> bool:
        addresses = await self.settings.notification_addresses()
        if not addresses:
            logger.warning(
                "No approval notification address configured: pending_id=%s", registration.id
            )
            return False
        return await deliver(
            "approval notification email",
            self.notifier.send_approval_notification(
                addresses, registration, pair.approval_token, pair.reject_token
            ),
            recipient=", ".join(addresses),
            subject_id=registration.id,
        )

    async def _send_verification(self, user: User) -> bool:
        token = generate_token()
        await self.user_repository.set_verification_token(
            user.id, token, utcnow() + self.verification_token_ttl
        )
        return await deliver(
            "verification email",
            self.notifier.send_verification_email(user.email, user.username, token),
            recipient=user.email,
            subject_id=user.id,
        )

    async def _notify_new_user(self, user: User) -> bool:
        addresses = await self.settings.notification_addresses()
        if not addresses:
            return False
        return await deliver(
            "new user notification email",
            self.notifier.send_new_user_notification(addresses, user),
            recipient=", ".join(addresses),
            subject_id=user.id,
        )
