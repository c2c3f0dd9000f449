"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Adapters are created once in the application lifespan and
stored on app.state; services are cheap and built per request.
"""

import asyncio
from datetime import timedelta

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import AsyncConnectionPool

from src.config.settings import get_settings
from src.domain.accounts import AccountService
from src.domain.approval import ApprovalService
from src.domain.exceptions import StoreFailure
from src.domain.passwords import check_password
from src.domain.ports import (
    Notifier,
    PendingRegistrationRepository,
    SettingsRepository,
    User,
    UserRepository,
)
from src.domain.system_settings import SystemSettings

# Compared against when the username is unknown so the response time
# does not reveal whether an account exists.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


def get_pool(request: Request) -> AsyncConnectionPool | None:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    It is None when the in-memory storage backend is configured.
    """
    return request.app.state.pool


def get_pending_repository(request: Request) -> PendingRegistrationRepository:
    return request.app.state.pending_repository


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository


def get_settings_repository(request: Request) -> SettingsRepository:
    return request.app.state.settings_repository


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_system_settings(request: Request) -> SystemSettings:
    settings = get_settings()
    return SystemSettings(
        repository=get_settings_repository(request),
        default_notification_email=settings.default_notification_email,
    )


def get_approval_service(request: Request) -> ApprovalService:
    """
    Create approval service with injected dependencies.

    Wires together the repositories, settings and notifier for the domain service.
    """
    settings = get_settings()
    return ApprovalService(
        pending_repository=get_pending_repository(request),
        user_repository=get_user_repository(request),
        settings=get_system_settings(request),
        notifier=get_notifier(request),
        bcrypt_cost=settings.bcrypt_cost,
        approval_token_ttl=timedelta(days=settings.approval_token_ttl_days),
        verification_token_ttl=timedelta(hours=settings.verification_token_ttl_hours),
    )


def get_account_service(request: Request) -> AccountService:
    settings = get_settings()
    return AccountService(
        user_repository=get_user_repository(request),
        notifier=get_notifier(request),
        bcrypt_cost=settings.bcrypt_cost,
        verification_token_ttl=timedelta(hours=settings.verification_token_ttl_hours),
        password_reset_token_ttl=timedelta(minutes=settings.password_reset_token_ttl_minutes),
    )


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


async def get_current_reviewer(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> User:
    """
    Authenticate an admin or manager from the HTTP BASIC AUTH header.

    The username part may hold either the username or the email address.

    Returns:
        The authenticated reviewer

    Raises:
        HTTPException: 401 for bad credentials, 403 for accounts that may not review
    """
    login = credentials.username.strip()
    try:
        user = await get_user_repository(request).find_by_username_or_email(login, login.lower())
    except StoreFailure:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from None

    stored_hash = user.password_hash if user is not None else _DUMMY_BCRYPT_HASH
    password_valid = await asyncio.to_thread(check_password, credentials.password, stored_hash)

    if user is None or not password_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    if not user.can_review:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin or manager access required")
    return user
