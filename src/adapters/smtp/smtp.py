"""
SMTP notifier adapter - Implements Notifier protocol with smtplib.

smtplib is blocking, so each send runs in a worker thread. Delivery
errors surface as NotificationFailed for the domain to handle.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from src.domain.exceptions import NotificationFailed
from src.domain.ports import PendingRegistration, User

from .messages import EmailContent, MessageBuilder

logger = logging.getLogger(__name__)


class SmtpNotifier:
    """Implements Notifier protocol by sending plain-text email over SMTP."""

    def __init__(
        self,
        messages: MessageBuilder,
        host: str,
        port: int,
        sender: str,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._messages = messages
        self._host = host
        self._port = port
        self._sender = sender
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    async def send_approval_notification(
        self,
        to_addresses: list[str],
        registration: PendingRegistration,
        approval_token: str,
        reject_token: str,
    ) -> None:
        content = self._messages.approval_request(registration, approval_token, reject_token)
        await self._send(to_addresses, content)

    async def send_new_user_notification(self, to_addresses: list[str], user: User) -> None:
        await self._send(to_addresses, self._messages.new_user(user))

    async def send_verification_email(self, email: str, username: str, token: str) -> None:
        await self._send([email], self._messages.verification(username, token))

    async def send_rejection_email(self, email: str, username: str) -> None:
        await self._send([email], self._messages.rejection(username))

    async def send_welcome_email(self, email: str, username: str) -> None:
        await self._send([email], self._messages.welcome(username))

    async def send_password_reset_email(self, email: str, username: str, token: str) -> None:
        await self._send([email], self._messages.password_reset(username, token))

    async def _send(self, recipients: list[str], content: EmailContent) -> None:
        message = EmailMessage()
        message["Subject"] = content.subject
        message["From"] = self._sender
        message["To"] = ", ".join(recipients)
        message.set_content(content.body)

        try:
            await asyncio.to_thread(self._deliver, recipients, message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailed(f"SMTP delivery failed: {e}") from e
        logger.debug("SMTP message accepted: subject=%s recipients=%s", content.subject, recipients)

    def _deliver(self, recipients: list[str], message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._user:
                server.login(self._user, self._password or "")
            server.send_message(message, to_addrs=recipients)
