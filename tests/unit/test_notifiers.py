"""
Unit tests for the notifier adapters and email content.

Tests verify:
- Both adapters satisfy the Notifier protocol structurally
- Console notifier logs action links in a greppable format
- SMTP notifier builds messages and maps delivery errors
- Message builder produces working links
"""

import logging
import smtplib
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from src.adapters.smtp.console import ConsoleNotifier
from src.adapters.smtp.messages import MessageBuilder
from src.adapters.smtp.smtp import SmtpNotifier
from src.domain.exceptions import NotificationFailed
from src.domain.ports import Notifier, PendingRegistration, PendingStatus, User
from src.domain.tokens import utcnow

BASE_URL = "https://prompts.example.com/"


@pytest.fixture
def messages() -> MessageBuilder:
    return MessageBuilder(base_url=BASE_URL)


@pytest.fixture
def registration() -> PendingRegistration:
    return PendingRegistration(
        id=12,
        username="alice",
        email="alice@x.com",
        password_hash="hash",
        status=PendingStatus.PENDING,
        created_at=utcnow(),
    )


@pytest.fixture
def user() -> User:
    return User(
        id=3, username="alice", email="alice@x.com", password_hash="hash", created_at=utcnow()
    )


@pytest.fixture
def smtp_notifier(messages: MessageBuilder) -> SmtpNotifier:
    return SmtpNotifier(
        messages,
        host="smtp.example.com",
        port=587,
        sender="noreply@example.com",
        user="mailer",
        password="secret",
    )


class TestProtocolCompliance:
    """Adapters use structural subtyping, not inheritance."""

    @pytest.mark.parametrize("adapter", [ConsoleNotifier, SmtpNotifier])
    def test_no_explicit_inheritance(self, adapter: type) -> None:
        assert adapter.__bases__ == (object,)

    @pytest.mark.parametrize("adapter", [ConsoleNotifier, SmtpNotifier])
    def test_has_every_notifier_method(self, adapter: type) -> None:
        for name in (
            "send_approval_notification",
            "send_new_user_notification",
            "send_verification_email",
            "send_rejection_email",
            "send_welcome_email",
            "send_password_reset_email",
        ):
            assert callable(getattr(adapter, name)), name
            assert hasattr(Notifier, name)


class TestMessageBuilder:
    """Tests for MessageBuilder."""

    def test_approve_url_carries_token(self, messages: MessageBuilder) -> None:
        url = urlparse(messages.approve_url("abc123"))

        assert url.netloc == "prompts.example.com"
        assert url.path == "/v1/approve-user-by-email"
        assert parse_qs(url.query) == {"token": ["abc123"]}

    def test_reject_url(self, messages: MessageBuilder) -> None:
        assert messages.reject_url("t") == "https://prompts.example.com/v1/reject-user-by-email?token=t"

    def test_approval_request_lists_applicant_and_links(
        self, messages: MessageBuilder, registration: PendingRegistration
    ) -> None:
        content = messages.approval_request(registration, "approve-tok", "reject-tok")

        assert "Action Required" in content.subject
        assert "alice@x.com" in content.body
        assert messages.approve_url("approve-tok") in content.body
        assert messages.reject_url("reject-tok") in content.body

    def test_verification_contains_link(self, messages: MessageBuilder) -> None:
        content = messages.verification("alice", "verify-tok")
        assert messages.verify_url("verify-tok") in content.body
        assert content.body.startswith("Hi alice")

    def test_password_reset_contains_link(self, messages: MessageBuilder) -> None:
        content = messages.password_reset("alice", "reset-tok")
        assert messages.reset_password_url("reset-tok") in content.body

    def test_new_user_lists_account(self, messages: MessageBuilder, user: User) -> None:
        content = messages.new_user(user)
        assert "Registration" in content.subject
        assert "Username: alice" in content.body
        assert "Email: alice@x.com" in content.body


@pytest.mark.anyio
class TestConsoleNotifier:
    """Tests for ConsoleNotifier."""

    async def test_approval_notification_logs_links(
        self,
        messages: MessageBuilder,
        registration: PendingRegistration,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        notifier = ConsoleNotifier(messages)

        with caplog.at_level(logging.INFO):
            await notifier.send_approval_notification(
                ["a@x.com", "b@x.com"], registration, "approve-tok", "reject-tok"
            )

        assert "[APPROVAL] To: a@x.com, b@x.com" in caplog.text
        assert messages.approve_url("approve-tok") in caplog.text
        assert messages.reject_url("reject-tok") in caplog.text

    async def test_verification_logs_link(
        self, messages: MessageBuilder, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO):
            await ConsoleNotifier(messages).send_verification_email("alice@x.com", "alice", "tok")

        assert "[VERIFICATION] Email: alice@x.com" in caplog.text
        assert caplog.records[0].levelno == logging.INFO

    async def test_rejection_and_welcome_logged(
        self, messages: MessageBuilder, caplog: pytest.LogCaptureFixture
    ) -> None:
        notifier = ConsoleNotifier(messages)
        with caplog.at_level(logging.INFO):
            await notifier.send_rejection_email("alice@x.com", "alice")
            await notifier.send_welcome_email("alice@x.com", "alice")

        assert "[REJECTION]" in caplog.text
        assert "[WELCOME]" in caplog.text

    async def test_new_user_notification_logged(
        self, messages: MessageBuilder, user: User, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO):
            await ConsoleNotifier(messages).send_new_user_notification(["a@x.com"], user)

        assert "[NEW USER] To: a@x.com User: alice <alice@x.com>" in caplog.text


@pytest.mark.anyio
class TestSmtpNotifier:
    """Tests for SmtpNotifier with smtplib patched out."""

    async def test_sends_over_starttls_with_login(
        self, smtp_notifier: SmtpNotifier, registration: PendingRegistration
    ) -> None:
        with patch("src.adapters.smtp.smtp.smtplib.SMTP") as smtp_class:
            server = smtp_class.return_value.__enter__.return_value

            await smtp_notifier.send_approval_notification(
                ["a@x.com", "b@x.com"], registration, "approve-tok", "reject-tok"
            )

        smtp_class.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "a@x.com, b@x.com"
        assert message["From"] == "noreply@example.com"
        assert message["Subject"] == "New User Pending Approval - Action Required"
        assert server.send_message.call_args.kwargs["to_addrs"] == ["a@x.com", "b@x.com"]

    async def test_skips_tls_and_login_when_not_configured(self, messages: MessageBuilder) -> None:
        notifier = SmtpNotifier(
            messages, host="localhost", port=25, sender="noreply@example.com", use_tls=False
        )
        with patch("src.adapters.smtp.smtp.smtplib.SMTP") as smtp_class:
            server = smtp_class.return_value.__enter__.return_value

            await notifier.send_rejection_email("alice@x.com", "alice")

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.send_message.assert_called_once()

    @pytest.mark.parametrize(
        "error", [smtplib.SMTPRecipientsRefused({}), ConnectionRefusedError("refused")]
    )
    async def test_delivery_errors_become_notification_failed(
        self, smtp_notifier: SmtpNotifier, error: Exception
    ) -> None:
        with patch("src.adapters.smtp.smtp.smtplib.SMTP", MagicMock(side_effect=error)):
            with pytest.raises(NotificationFailed):
                await smtp_notifier.send_verification_email("alice@x.com", "alice", "tok")
