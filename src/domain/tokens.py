"""
Opaque action tokens.

Tokens are random hex strings with no embedded claims. Expiry and subject
state live server-side and are checked on every use.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_token() -> str:
    """64 hex characters from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def token_preview(token: str | None) -> str:
    """Loggable prefix of a token."""
    if not token:
        return "missing"
    return token[:8] + "..."


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """A missing expiry counts as expired."""
    if expires_at is None:
        return True
    return expires_at <= (now or utcnow())


def tokens_match(expected: str | None, candidate: str) -> bool:
    if expected is None:
        return False
    return secrets.compare_digest(expected.encode(), candidate.encode())


@dataclass(frozen=True)
class ApprovalTokenPair:
    """Approve/reject tokens sharing one expiry."""

    approval_token: str
    reject_token: str
    expires_at: datetime

    @classmethod
    def issue(cls, ttl: timedelta, now: datetime | None = None) -> "ApprovalTokenPair":
        return cls(
            approval_token=generate_token(),
            reject_token=generate_token(),
            expires_at=(now or utcnow()) + ttl,
        )
