"""
API v1 routes.

Defines the public REST endpoints: registration, email verification,
password reset, and the one-click approve/reject links sent to reviewers.
"""

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import get_account_service, get_approval_service
from src.api.errors import http_error, token_http_error
from src.api.models import (
    ApprovalResponse,
    EmailRequest,
    ErrorResponse,
    MessageResponse,
    PendingUserResponse,
    RegisterRequest,
    RegisterResponse,
    RejectionResponse,
    ResetPasswordRequest,
    TokenRequest,
    UserSummary,
    VerifyEmailResponse,
)
from src.domain.accounts import AccountService
from src.domain.approval import ApprovalService
from src.domain.exceptions import ApprovalError

router = APIRouter(tags=["v1"])

APPROVAL_REQUIRED_MESSAGE = (
    "Thank you for signing up. You will be notified when your account has been approved."
)
VERIFICATION_REQUIRED_MESSAGE = (
    "Registration successful! Please check your email to verify your account."
)
IF_ACCOUNT_EXISTS_MESSAGE = "If an account exists with this email, a link has been sent."


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Username or email already taken or pending"},
        422: {"description": "Validation error"},
    },
    summary="Register a new user",
    description="Submit username, email and password. With approval mode on the "
    "registration waits for a reviewer; otherwise a verification email is sent.",
)
async def register(
    request_data: RegisterRequest,
    service: ApprovalService = Depends(get_approval_service),
) -> RegisterResponse:
    """
    Register a new user.

    - **username**: 3-30 characters
    - **email**: Valid email address
    - **password**: Password (minimum 8 characters)
    """
    try:
        outcome = await service.register(
            request_data.username, request_data.email, request_data.password
        )
    except ApprovalError as e:
        raise http_error(e) from None
    return RegisterResponse(
        message=(
            APPROVAL_REQUIRED_MESSAGE if outcome.requires_approval else VERIFICATION_REQUIRED_MESSAGE
        ),
        id=outcome.id,
        username=outcome.username,
        email=outcome.email,
        created_at=outcome.created_at,
        requires_approval=outcome.requires_approval,
    )


@router.get(
    "/approve-user-by-email",
    response_model=ApprovalResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired link"},
        409: {"model": ErrorResponse, "description": "Already reviewed or user exists"},
    },
    summary="Approve a pending user from an email link",
)
async def approve_by_email(
    token: str = Query(..., min_length=1, max_length=256),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    try:
        outcome = await service.approve_by_token(token)
    except ApprovalError as e:
        raise token_http_error(e) from None
    return ApprovalResponse(
        message="User approved successfully",
        user=UserSummary.model_validate(outcome.user),
    )


@router.get(
    "/reject-user-by-email",
    response_model=RejectionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired link"},
        409: {"model": ErrorResponse, "description": "Already reviewed"},
    },
    summary="Reject a pending user from an email link",
)
async def reject_by_email(
    token: str = Query(..., min_length=1, max_length=256),
    service: ApprovalService = Depends(get_approval_service),
) -> RejectionResponse:
    try:
        registration = await service.reject_by_token(token)
    except ApprovalError as e:
        raise token_http_error(e) from None
    return RejectionResponse(
        message="User rejected successfully",
        registration=PendingUserResponse.model_validate(registration),
    )


@router.post(
    "/verify-email",
    response_model=VerifyEmailResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Verify email address",
)
async def verify_email(
    request_data: TokenRequest,
    service: AccountService = Depends(get_account_service),
) -> VerifyEmailResponse:
    try:
        user = await service.verify_email(request_data.token)
    except ApprovalError as e:
        raise token_http_error(e) from None
    return VerifyEmailResponse(
        message="Email verified successfully! You can now log in.",
        username=user.username,
    )


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    responses={
        409: {"model": ErrorResponse, "description": "Email already verified"},
        503: {"model": ErrorResponse, "description": "Email could not be sent"},
    },
    summary="Resend the verification email",
)
async def resend_verification(
    request_data: EmailRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    # Unknown addresses get the same answer as delivered ones
    try:
        await service.resend_verification(request_data.email)
    except ApprovalError as e:
        raise http_error(e) from None
    return MessageResponse(message=IF_ACCOUNT_EXISTS_MESSAGE)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={403: {"model": ErrorResponse, "description": "Email not verified"}},
    summary="Request a password reset link",
)
async def forgot_password(
    request_data: EmailRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        await service.request_password_reset(request_data.email)
    except ApprovalError as e:
        raise http_error(e) from None
    return MessageResponse(message=IF_ACCOUNT_EXISTS_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Reset password with a reset token",
)
async def reset_password(
    request_data: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        await service.reset_password(request_data.token, request_data.password)
    except ApprovalError as e:
        raise token_http_error(e) from None
    return MessageResponse(
        message="Password reset successfully! You can now log in with your new password."
    )
