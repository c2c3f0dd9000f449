"""
Plain-text email content for the approval workflow.

Both notifier adapters render through MessageBuilder so the console log
and real email carry the same links.
"""

from dataclasses import dataclass
from urllib.parse import urlencode

from src.domain.ports import PendingRegistration, User


@dataclass(frozen=True)
class EmailContent:
    subject: str
    body: str


@dataclass(frozen=True)
class MessageBuilder:
    """Builds subjects, bodies and action links against the public base URL."""

    base_url: str

    def _link(self, path: str, token: str | None = None) -> str:
        url = f"{self.base_url.rstrip('/')}{path}"
        if token is not None:
            url = f"{url}?{urlencode({'token': token})}"
        return url

    def approve_url(self, token: str) -> str:
        return self._link("/v1/approve-user-by-email", token)

    def reject_url(self, token: str) -> str:
        return self._link("/v1/reject-user-by-email", token)

    def verify_url(self, token: str) -> str:
        return self._link("/verify-email", token)

    def reset_password_url(self, token: str) -> str:
        return self._link("/reset-password", token)

    def approval_request(
        self, registration: PendingRegistration, approval_token: str, reject_token: str
    ) -> EmailContent:
        body = (
            "A new user is waiting for approval.\n\n"
            f"Username: {registration.username}\n"
            f"Email: {registration.email}\n"
            f"Registered: {registration.created_at:%Y-%m-%d %H:%M %Z}\n\n"
            f"Approve: {self.approve_url(approval_token)}\n"
            f"Reject: {self.reject_url(reject_token)}\n\n"
            "These links expire in 7 days. Pending users can also be reviewed "
            f"in the admin portal: {self._link('/admin/approve-users')}\n"
        )
        return EmailContent(subject="New User Pending Approval - Action Required", body=body)

    def new_user(self, user: User) -> EmailContent:
        body = (
            "A new account was created without approval.\n\n"
            f"Username: {user.username}\n"
            f"Email: {user.email}\n"
            f"Registered: {user.created_at:%Y-%m-%d %H:%M %Z}\n"
        )
        return EmailContent(subject="New User Registration - AI Prompt Templates", body=body)

    def verification(self, username: str, token: str) -> EmailContent:
        body = (
            f"Hi {username},\n\n"
            "Please verify your email address by opening the link below:\n\n"
            f"{self.verify_url(token)}\n\n"
            "This link expires in 24 hours.\n"
        )
        return EmailContent(subject="Verify your email address", body=body)

    def rejection(self, username: str) -> EmailContent:
        body = (
            f"Hi {username},\n\n"
            "Your account registration could not be approved at this time. "
            "If you believe this is a mistake, please contact support.\n"
        )
        return EmailContent(subject="Account Registration - Action Required", body=body)

    def welcome(self, username: str) -> EmailContent:
        body = (
            f"Hi {username},\n\n"
            "Your email address is verified and your account is ready. "
            f"You can log in at {self._link('/login')}\n"
        )
        return EmailContent(subject="Welcome to AI Prompt Templates", body=body)

    def password_reset(self, username: str, token: str) -> EmailContent:
        body = (
            f"Hi {username},\n\n"
            "We received a request to reset your password. Open the link below "
            "to choose a new one:\n\n"
            f"{self.reset_password_url(token)}\n\n"
            "This link expires in 1 hour. If you did not ask for this, ignore this email.\n"
        )
        return EmailContent(subject="Reset your password", body=body)
