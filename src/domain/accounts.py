"""
Account domain service - email verification and password reset.

Verification and password reset tokens live on the user record, in a
namespace separate from the approve/reject tokens of pending registrations.
Lookups for unknown email addresses succeed silently so that callers
cannot probe which accounts exist.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta

from .approval import VERIFICATION_TOKEN_TTL, normalize_email
from .exceptions import (
    EmailAlreadyVerified,
    EmailNotVerified,
    InvalidOrExpiredToken,
    NotificationFailed,
)
from .notifications import deliver
from .passwords import hash_password
from .ports import Notifier, User, UserRepository
from .tokens import generate_token, is_expired, token_preview, utcnow

logger = logging.getLogger(__name__)

PASSWORD_RESET_TOKEN_TTL = timedelta(hours=1)


@dataclass
class AccountService:
    """Domain service for post-registration account maintenance."""

    user_repository: UserRepository
    notifier: Notifier
    bcrypt_cost: int = 10
    verification_token_ttl: timedelta = VERIFICATION_TOKEN_TTL
    password_reset_token_ttl: timedelta = PASSWORD_RESET_TOKEN_TTL

    async def verify_email(self, token: str) -> User:
        """
        Mark the token holder's email as verified.

        Raises:
            InvalidOrExpiredToken: unknown, expired, or already used token
        """
        user = await self.user_repository.find_by_verification_token(token)
        if user is None or user.email_verified or is_expired(user.verification_token_expires_at):
            logger.warning("Invalid or expired verification token: token=%s", token_preview(token))
            raise InvalidOrExpiredToken()

        if not await self.user_repository.mark_email_verified(user.id):
            raise InvalidOrExpiredToken()
        logger.info("Email verified successfully: user_id=%s", user.id)

        await deliver(
            "welcome email",
            self.notifier.send_welcome_email(user.email, user.username),
            recipient=user.email,
            subject_id=user.id,
        )
        return user

    async def resend_verification(self, email: str) -> bool:
        """
        Issue a fresh verification token and email it.

        Returns:
            True if an email was sent, False for an unknown address

        Raises:
            EmailAlreadyVerified: nothing left to verify
            NotificationFailed: the email could not be delivered
        """
        user = await self.user_repository.find_by_email(normalize_email(email))
        if user is None:
            logger.warning("Verification resend for unknown email: email=%s", email)
            return False
        if user.email_verified:
            raise EmailAlreadyVerified()

        token = generate_token()
        await self.user_repository.set_verification_token(
            user.id, token, utcnow() + self.verification_token_ttl
        )
        sent = await deliver(
            "verification email",
            self.notifier.send_verification_email(user.email, user.username, token),
            recipient=user.email,
            subject_id=user.id,
        )
        if not sent:
            raise NotificationFailed("Failed to send verification email. Please try again later.")
        return True

    async def request_password_reset(self, email: str) -> bool:
        """
        Issue a password reset token and email it.

        Returns:
            True if an email was sent, False for an unknown address

        Raises:
            EmailNotVerified: reset is only offered to verified addresses
            NotificationFailed: the email could not be delivered
        """
        user = await self.user_repository.find_by_email(normalize_email(email))
        if user is None:
            logger.warning("Password reset for unknown email: email=%s", email)
            return False
        if not user.email_verified:
            logger.warning("Password reset for unverified email: user_id=%s", user.id)
            raise EmailNotVerified("Please verify your email before resetting your password.")

        token = generate_token()
        await self.user_repository.set_password_reset_token(
            user.id, token, utcnow() + self.password_reset_token_ttl
        )
        sent = await deliver(
            "password reset email",
            self.notifier.send_password_reset_email(user.email, user.username, token),
            recipient=user.email,
            subject_id=user.id,
        )
        if not sent:
            raise NotificationFailed(
                "Failed to send password reset email. Please try again later."
            )
        return True

    async def reset_password(self, token: str, new_password: str) -> User:
        """
        Replace the password of the token holder.

        The update itself re-checks the token, so concurrent requests with
        one token change the password once.

        Raises:
            InvalidOrExpiredToken: unknown, expired, or already used reset token
        """
        user = await self.user_repository.find_by_password_reset_token(token)
        if user is None or is_expired(user.password_reset_token_expires_at):
            logger.warning("Invalid or expired password reset token: token=%s", token_preview(token))
            raise InvalidOrExpiredToken()

        password_hash = await asyncio.to_thread(hash_password, new_password, self.bcrypt_cost)
        if not await self.user_repository.update_password(user.id, password_hash, token):
            logger.warning(
                "Password reset token already used: user_id=%s token=%s",
                user.id,
                token_preview(token),
            )
            raise InvalidOrExpiredToken()
        logger.info("Password reset successfully: user_id=%s", user.id)
        return user
