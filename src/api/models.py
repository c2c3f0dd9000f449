"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Response models never expose password hashes or action tokens.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, field_validator

from src.domain.ports import PendingStatus


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=30,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Username (3-30 characters: letters, digits, _ . -)",
    )
    email: EmailStr
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    id: int
    username: str
    email: str
    created_at: datetime
    requires_approval: bool


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)


class EmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=8, description="New password (min 8 characters)")


class MessageResponse(BaseModel):
    message: str


class VerifyEmailResponse(BaseModel):
    message: str
    username: str


class ReviewRequest(BaseModel):
    """Optional reviewer notes for approve/reject."""

    review_notes: str | None = Field(None, max_length=500)

    @field_validator("review_notes")
    @classmethod
    def strip_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class PendingUserResponse(BaseModel):
    """Pending registration as shown to reviewers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    status: PendingStatus
    created_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: int | None = None
    review_notes: str | None = None
    token_expires_at: datetime | None = None


class PendingUserListResponse(BaseModel):
    pending_users: list[PendingUserResponse]


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str


class ApprovalResponse(BaseModel):
    """Response model for a successful approval."""

    message: str
    user: UserSummary


class RejectionResponse(BaseModel):
    message: str
    registration: PendingUserResponse


class ResendResponse(BaseModel):
    message: str
    notified: bool


class ApprovalModeRequest(BaseModel):
    enabled: StrictBool


class ApprovalModeResponse(BaseModel):
    enabled: bool


class NotificationEmailRequest(BaseModel):
    addresses: list[EmailStr] = Field(..., min_length=1)


class NotificationEmailResponse(BaseModel):
    addresses: list[str]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
