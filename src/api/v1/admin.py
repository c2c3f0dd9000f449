"""
API v1 admin routes.

Reviewer endpoints for the pending registration queue and the approval
settings. Every route requires HTTP BASIC AUTH credentials of an admin or
manager account.
"""

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import get_approval_service, get_current_reviewer, get_system_settings
from src.api.errors import http_error
from src.api.models import (
    ApprovalModeRequest,
    ApprovalModeResponse,
    ApprovalResponse,
    ErrorResponse,
    MessageResponse,
    NotificationEmailRequest,
    NotificationEmailResponse,
    PendingUserListResponse,
    PendingUserResponse,
    RejectionResponse,
    ResendResponse,
    ReviewRequest,
    UserSummary,
)
from src.domain.approval import ApprovalService
from src.domain.exceptions import ApprovalError
from src.domain.ports import PendingStatus, User
from src.domain.system_settings import SystemSettings

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
        403: {"model": ErrorResponse, "description": "Admin or manager access required"},
    },
)

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Pending user not found"}}


@router.get(
    "/pending-users",
    response_model=PendingUserListResponse,
    summary="List registrations by status",
)
async def list_pending_users(
    status_filter: PendingStatus = Query(PendingStatus.PENDING, alias="status"),
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> PendingUserListResponse:
    try:
        records = await service.list_pending(status_filter)
    except ApprovalError as e:
        raise http_error(e) from None
    return PendingUserListResponse(
        pending_users=[PendingUserResponse.model_validate(record) for record in records]
    )


@router.get(
    "/pending-users/{pending_id}",
    response_model=PendingUserResponse,
    responses=_NOT_FOUND,
    summary="Get one registration",
)
async def get_pending_user(
    pending_id: int,
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> PendingUserResponse:
    try:
        record = await service.get_by_id(pending_id)
    except ApprovalError as e:
        raise http_error(e) from None
    return PendingUserResponse.model_validate(record)


@router.post(
    "/pending-users/{pending_id}/approve",
    response_model=ApprovalResponse,
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Already reviewed or user exists"},
    },
    summary="Approve a pending user",
)
async def approve_pending_user(
    pending_id: int,
    request_data: ReviewRequest | None = None,
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    notes = request_data.review_notes if request_data else None
    try:
        outcome = await service.approve_by_admin(pending_id, reviewer.id, notes)
    except ApprovalError as e:
        raise http_error(e) from None
    return ApprovalResponse(
        message="User approved successfully",
        user=UserSummary.model_validate(outcome.user),
    )


@router.post(
    "/pending-users/{pending_id}/reject",
    response_model=RejectionResponse,
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Already reviewed"},
    },
    summary="Reject a pending user",
)
async def reject_pending_user(
    pending_id: int,
    request_data: ReviewRequest | None = None,
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> RejectionResponse:
    notes = request_data.review_notes if request_data else None
    try:
        registration = await service.reject_by_admin(pending_id, reviewer.id, notes)
    except ApprovalError as e:
        raise http_error(e) from None
    return RejectionResponse(
        message="User rejected successfully",
        registration=PendingUserResponse.model_validate(registration),
    )


@router.post(
    "/pending-users/{pending_id}/resend",
    response_model=ResendResponse,
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Already reviewed"},
    },
    summary="Resend the approval request email",
)
async def resend_approval_notification(
    pending_id: int,
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> ResendResponse:
    try:
        notified = await service.resend_notification(pending_id)
    except ApprovalError as e:
        raise http_error(e) from None
    message = "Approval request sent" if notified else "Approval request could not be sent"
    return ResendResponse(message=message, notified=notified)


@router.delete(
    "/pending-users/{pending_id}",
    response_model=MessageResponse,
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Registration still pending"},
    },
    summary="Remove a reviewed registration",
)
async def remove_pending_user(
    pending_id: int,
    reviewer: User = Depends(get_current_reviewer),
    service: ApprovalService = Depends(get_approval_service),
) -> MessageResponse:
    try:
        await service.remove(pending_id)
    except ApprovalError as e:
        raise http_error(e) from None
    return MessageResponse(message="Registration removed")


@router.get(
    "/settings/approval-mode",
    response_model=ApprovalModeResponse,
    summary="Get approval mode",
)
async def get_approval_mode(
    reviewer: User = Depends(get_current_reviewer),
    settings: SystemSettings = Depends(get_system_settings),
) -> ApprovalModeResponse:
    return ApprovalModeResponse(enabled=await settings.approval_enabled())


@router.put(
    "/settings/approval-mode",
    response_model=ApprovalModeResponse,
    status_code=status.HTTP_200_OK,
    summary="Enable or disable approval mode",
)
async def set_approval_mode(
    request_data: ApprovalModeRequest,
    reviewer: User = Depends(get_current_reviewer),
    settings: SystemSettings = Depends(get_system_settings),
) -> ApprovalModeResponse:
    try:
        await settings.set_approval_enabled(request_data.enabled, reviewer.id)
    except ApprovalError as e:
        raise http_error(e) from None
    return ApprovalModeResponse(enabled=request_data.enabled)


@router.get(
    "/settings/notification-email",
    response_model=NotificationEmailResponse,
    summary="Get approval notification recipients",
)
async def get_notification_email(
    reviewer: User = Depends(get_current_reviewer),
    settings: SystemSettings = Depends(get_system_settings),
) -> NotificationEmailResponse:
    return NotificationEmailResponse(addresses=await settings.notification_addresses())


@router.put(
    "/settings/notification-email",
    response_model=NotificationEmailResponse,
    summary="Set approval notification recipients",
)
async def set_notification_email(
    request_data: NotificationEmailRequest,
    reviewer: User = Depends(get_current_reviewer),
    settings: SystemSettings = Depends(get_system_settings),
) -> NotificationEmailResponse:
    addresses = [str(address) for address in request_data.addresses]
    try:
        await settings.set_notification_addresses(addresses, reviewer.id)
    except ApprovalError as e:
        raise http_error(e) from None
    return NotificationEmailResponse(addresses=addresses)
