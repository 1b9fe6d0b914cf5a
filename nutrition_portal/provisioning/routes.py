"""
Nutrition Portal - Provisioning Routes

API endpoints for the role-provisioning workflow:
- POST /auth/register                         - Create account (admin)
- GET  /users                                 - List accounts (admin)
- GET  /users/pending-details                 - Officer accounts awaiting details (admin)
- GET  /users/{user_id}                       - Get account (admin or self)
- PUT  /users/{user_id}                       - Edit account (admin)
- GET  /user-details/active/{role}            - On-duty officer (public)
- POST /user-details/{role}[/{user_id}]       - Complete officer account
- GET  /user-details/{role}/{user_id}         - Officer details (admin or self)
- PUT  /user-details/{role}/{user_id}         - Edit/create officer details

Role path segments accept "deo"/"vo" and the long spellings.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session as DBSession

from nutrition_portal.auth.database import get_db
from nutrition_portal.auth.dependencies import (
    AuthenticatedUser,
    ensure_self_or_permission,
    get_current_user,
    require_permission,
)
from nutrition_portal.auth.models import Role, User
from nutrition_portal.auth.schemas import ErrorResponse, UserResponse
from nutrition_portal.exceptions import NotFound, ValidationFailed
from nutrition_portal.gateway.rbac import Permission
from nutrition_portal.provisioning import service
from nutrition_portal.provisioning.schemas import (
    ActiveOfficer,
    ActiveOfficerResponse,
    RegisterRequest,
    RegisterResponse,
    RoleDetailMutationResponse,
    RoleDetailRequest,
    RoleDetailResponse,
    UpdateUserRequest,
    UserDetails,
    UserDetailsResponse,
    UserListResponse,
    UserUpdateResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["provisioning"])


def _officer_role(value: str) -> Role:
    """Resolve a role path segment; only officer roles carry details."""
    try:
        role = Role.parse(value)
    except ValueError:
        raise NotFound(f"Unknown officer role: {value}")
    if not role.is_officer:
        raise NotFound(f"Unknown officer role: {value}")
    return role


def _user_out(db: DBSession, user: User) -> UserResponse:
    out = UserResponse.model_validate(user)
    out.provisioning_state = service.provisioning_state(db, user)
    return out


def _account_ref(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username}


def _detail_fields(body: RoleDetailRequest) -> dict:
    return body.model_dump(exclude={"user_id"})


# =============================================================================
# Accounts
# =============================================================================

@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Create an account (admin only)",
)
@require_permission(Permission.MANAGE_USERS)
async def register(
    body: RegisterRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Start a provisioning attempt.

    Officer accounts are returned with a token scoped to the new account so
    the dashboard can submit the detail record next. A 409 carrying
    ``activeUser`` means another officer of the same role is active; resubmit
    with ``deactivateConflicting: true`` once the operator confirms.
    """
    result = await service.create_account(
        db,
        username=body.username,
        password=body.password,
        confirm_password=body.confirm_password,
        role=body.role,
        is_active=body.is_active,
        deactivate_conflicting=body.deactivate_conflicting,
    )

    message = "User registered successfully"
    if result.requires_additional_details:
        message += ". Please complete additional details."

    logger.info("Account %s created by admin %s", result.user.id, user.user_id)

    return RegisterResponse(
        message=message,
        user=_user_out(db, result.user),
        token=result.token,
        requiresAdditionalDetails=result.requires_additional_details,
        deactivatedUser=_account_ref(result.deactivated),
    )


@router.get("/users", response_model=UserListResponse, summary="List accounts")
@require_permission(Permission.READ_USERS)
async def list_users(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    users = []
    for account, state in service.list_accounts(db):
        out = UserResponse.model_validate(account)
        out.provisioning_state = state
        users.append(out)
    return UserListResponse(users=users, total=len(users))


@router.get(
    "/users/pending-details",
    response_model=UserListResponse,
    summary="Officer accounts still awaiting their detail record",
)
@require_permission(Permission.READ_USERS)
async def list_pending_details(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """Accounts abandoned between the two provisioning steps."""
    pending = [_user_out(db, account) for account in service.list_pending_details(db)]
    return UserListResponse(users=pending, total=len(pending))


@router.get("/users/{user_id}", response_model=UserResponse, summary="Get an account")
async def get_user(
    user_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    ensure_self_or_permission(user, user_id, Permission.READ_USERS)
    return _user_out(db, service.get_account(db, user_id))


@router.put(
    "/users/{user_id}",
    response_model=UserUpdateResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Edit an account (admin only)",
)
@require_permission(Permission.MANAGE_USERS)
async def update_user(
    user_id: int,
    body: UpdateUserRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Edit username, password, role or active flag.

    Leaving the password blank keeps the current one. Activating an officer
    re-checks the single-active-officer rule.
    """
    updated, deactivated = await service.update_account(
        db,
        user_id,
        username=body.username,
        password=body.password,
        confirm_password=body.confirm_password,
        role=body.role,
        is_active=body.is_active,
        deactivate_conflicting=body.deactivate_conflicting,
    )
    return UserUpdateResponse(
        message="User updated successfully",
        user=_user_out(db, updated),
        deactivatedUser=_account_ref(deactivated),
    )


# =============================================================================
# Officer details
# =============================================================================

@router.get(
    "/user-details/active/{role}",
    response_model=ActiveOfficerResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Currently active officer for a role",
)
async def get_active_officer(role: str, db: DBSession = Depends(get_db)):
    officer_role = _officer_role(role)
    account, details = service.get_active_officer(db, officer_role)
    return ActiveOfficerResponse(
        data=ActiveOfficer(
            id=account.id,
            username=account.username,
            role=account.role,
            is_active=account.is_active,
            full_name=details.full_name,
            nic_number=details.nic_number,
            tel_number=details.tel_number,
            address=details.address,
        )
    )


async def _create_details(
    role: str,
    user_id: Optional[int],
    body: RoleDetailRequest,
    user: AuthenticatedUser,
    db: DBSession,
) -> RoleDetailMutationResponse:
    officer_role = _officer_role(role)

    target_id = user_id or body.user_id
    if target_id is None:
        raise ValidationFailed([{"path": "userId", "message": "User ID is required"}])

    ensure_self_or_permission(
        user, target_id, Permission.MANAGE_ROLE_DETAILS, self_permission=Permission.EDIT_OWN_DETAILS
    )

    details = await service.create_role_details(db, officer_role, target_id, _detail_fields(body))
    return RoleDetailMutationResponse(
        message=f"{officer_role.value.upper()} details created successfully",
        details=RoleDetailResponse.model_validate(details),
    )


@router.post(
    "/user-details/{role}",
    response_model=RoleDetailMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Complete an officer account (user ID in body)",
)
async def create_details(
    role: str,
    body: RoleDetailRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    return await _create_details(role, None, body, user, db)


@router.post(
    "/user-details/{role}/{user_id}",
    response_model=RoleDetailMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Complete an officer account",
)
async def create_details_for_user(
    role: str,
    user_id: int,
    body: RoleDetailRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    return await _create_details(role, user_id, body, user, db)


@router.get(
    "/user-details/{role}/{user_id}",
    response_model=UserDetailsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Account with its officer details",
)
async def get_details(
    role: str,
    user_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    officer_role = _officer_role(role)
    ensure_self_or_permission(
        user, user_id, Permission.MANAGE_ROLE_DETAILS, self_permission=Permission.EDIT_OWN_DETAILS
    )

    account, details = await service.get_role_details(db, officer_role, user_id)
    combined = UserDetails(
        **_user_out(db, account).model_dump(),
        details=RoleDetailResponse.model_validate(details),
    )
    return UserDetailsResponse(userDetails=combined)


@router.put(
    "/user-details/{role}/{user_id}",
    response_model=RoleDetailMutationResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Update officer details (created when missing)",
)
async def update_details(
    role: str,
    user_id: int,
    body: RoleDetailRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    officer_role = _officer_role(role)
    ensure_self_or_permission(
        user, user_id, Permission.MANAGE_ROLE_DETAILS, self_permission=Permission.EDIT_OWN_DETAILS
    )

    details, created = await service.update_role_details(
        db, officer_role, user_id, _detail_fields(body)
    )

    if created:
        response.status_code = status.HTTP_201_CREATED
        message = f"{officer_role.value.upper()} details created successfully"
    else:
        message = f"{officer_role.value.upper()} details updated successfully"

    return RoleDetailMutationResponse(
        message=message,
        details=RoleDetailResponse.model_validate(details),
    )
