"""
Console notifier adapter - Implements Notifier protocol.

This module provides a console-based implementation of the domain's
notifier port, logging emails and their action links for development.
"""

import logging

from src.domain.ports import PendingRegistration, User

from .messages import MessageBuilder

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """
    Implements Notifier protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints action links to stdout.
    Links are logged at INFO level to be visible in docker-compose logs.
    """

    def __init__(self, messages: MessageBuilder) -> None:
        self._messages = messages

    async def send_approval_notification(
        self,
        to_addresses: list[str],
        registration: PendingRegistration,
        approval_token: str,
        reject_token: str,
    ) -> None:
        logger.info(
            "[APPROVAL] To: %s User: %s <%s> Approve: %s Reject: %s",
            ", ".join(to_addresses),
            registration.username,
            registration.email,
            self._messages.approve_url(approval_token),
            self._messages.reject_url(reject_token),
        )

    async def send_new_user_notification(self, to_addresses: list[str], user: User) -> None:
        logger.info(
            "[NEW USER] To: %s User: %s <%s>", ", ".join(to_addresses), user.username, user.email
        )

    async def send_verification_email(self, email: str, username: str, token: str) -> None:
        logger.info(
            "[VERIFICATION] Email: %s User: %s Link: %s",
            email,
            username,
            self._messages.verify_url(token),
        )

    async def send_rejection_email(self, email: str, username: str) -> None:
        logger.info("[REJECTION] Email: %s User: %s", email, username)

    async def send_welcome_email(self, email: str, username: str) -> None:
        logger.info("[WELCOME] Email: %s User: %s", email, username)

    async def send_password_reset_email(self, email: str, username: str, token: str) -> None:
        logger.info(
            "[PASSWORD RESET] Email: %s User: %s Link: %s",
            email,
            username,
            self._messages.reset_password_url(token),
        )
