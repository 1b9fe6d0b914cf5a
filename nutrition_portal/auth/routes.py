"""
Nutrition Portal - Authentication Routes

API endpoints for authentication:
- POST /auth/login           - Verify credentials and issue a bearer token
- POST /auth/logout          - Revoke the presented token
- POST /auth/reset-password  - Change password with the old one
- GET  /auth/me              - Current account

Account creation lives in provisioning.routes (POST /auth/register).
Auth events are written to the nutrition_portal.audit logger.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session as DBSession, select

from nutrition_portal.auth.database import get_db
from nutrition_portal.auth.dependencies import AuthenticatedUser, get_current_user
from nutrition_portal.auth.models import ActiveFlag, ProvisioningState, User, utcnow
from nutrition_portal.auth.password import hash_password, needs_rehash, verify_password
from nutrition_portal.auth.revocation import revoke_token
from nutrition_portal.auth.schemas import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    UserResponse,
)
from nutrition_portal.auth.tokens import issue_bearer_token
from nutrition_portal.exceptions import LoginFailed, NotFound, PasswordMismatch
from nutrition_portal.provisioning.service import provisioning_state


audit = logging.getLogger("nutrition_portal.audit")

router = APIRouter(prefix="/auth", tags=["authentication"])


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _log_auth_event(request: Request, event_type: str, user_id: Optional[int] = None, **details):
    audit.info(
        event_type,
        extra={
            "user_id": user_id,
            "ip": get_client_ip(request),
            "request_id": getattr(request.state, "request_id", None),
            **details,
        },
    )


def _find_user(db: DBSession, username: str) -> Optional[User]:
    return db.exec(select(User).where(User.username == username)).first()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Authenticate and issue a bearer token",
)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: DBSession = Depends(get_db),
):
    """
    Authenticate with username and password.

    On success:
    1. Validates password against the bcrypt hash
    2. Upgrades the hash if it was made with a lower work factor
    3. Issues a bearer token carrying account ID and role
    4. Flags officer accounts that still need their detail record

    Raises:
        401: Login failed. Unknown user, wrong password and inactive account
             are indistinguishable to the caller.
    """
    user = _find_user(db, credentials.username)

    if user is None:
        _log_auth_event(request, "auth.login.failure", reason="user_not_found")
        raise LoginFailed()

    if not verify_password(credentials.password, user.password_hash):
        _log_auth_event(request, "auth.login.failure", user.id, reason="invalid_password")
        raise LoginFailed()

    if user.is_active != ActiveFlag.YES:
        _log_auth_event(request, "auth.login.failure", user.id, reason="account_inactive")
        raise LoginFailed()

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(credentials.password)
        db.add(user)
        db.commit()
        db.refresh(user)

    token, token_id = issue_bearer_token(user.id, user.role)
    state = provisioning_state(db, user)

    _log_auth_event(request, "auth.login.success", user.id, token_id=token_id)

    user_out = UserResponse.model_validate(user)
    user_out.provisioning_state = state
    return LoginResponse(
        token=token,
        user=user_out,
        requiresAdditionalDetails=state == ProvisioningState.DETAIL_PENDING,
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Revoke the presented bearer token",
)
async def logout(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Revoke the token used for this request.

    Subsequent requests with the same token fail with 401.
    """
    await revoke_token(db, user.token_id, user.user_id)
    _log_auth_event(request, "auth.logout", user.user_id, token_id=user.token_id)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Change password using the current one",
)
async def reset_password(
    request: Request,
    body: PasswordResetRequest,
    db: DBSession = Depends(get_db),
):
    if body.confirm_password is not None and body.confirm_password != body.new_password:
        raise PasswordMismatch()

    user = _find_user(db, body.username)
    if user is None or not verify_password(body.old_password, user.password_hash):
        _log_auth_event(
            request, "auth.password_reset.failure", user.id if user else None,
            reason="invalid_credentials",
        )
        raise LoginFailed("Invalid username or password")

    user.password_hash = hash_password(body.new_password)
    user.updated_at = utcnow()
    db.add(user)
    db.commit()

    _log_auth_event(request, "auth.password_reset", user.id)
    return MessageResponse(message="Password reset successfully")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current account",
)
async def get_me(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    account = db.get(User, user.user_id)
    if account is None:
        raise NotFound("User not found")

    out = UserResponse.model_validate(account)
    out.provisioning_state = provisioning_state(db, account)
    return out
