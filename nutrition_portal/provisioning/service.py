"""
Nutrition Portal - Role-Provisioning Workflow

Two-phase creation of officer accounts and the single-active-officer rule.

States of a provisioning attempt:
    Start -> (Conflict) -> AccountCreated -> DetailPending -> Complete

- Admin accounts are Complete as soon as they are created.
- Officer accounts (deo/vo) stay in DetailPending until their detail row exists.
- At most one officer account per role may be active. A conflicting active
  account is only deactivated when the caller explicitly asks for it, and the
  deactivation is written in the same transaction as the new state.

Services take an open SQLModel session and commit themselves; routes only
translate requests and responses.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session as DBSession, select

from nutrition_portal.auth.models import (
    ActiveFlag,
    ProvisioningState,
    Role,
    RoleDetailBase,
    User,
    detail_model_for,
    utcnow,
)
from nutrition_portal.auth.password import hash_password
from nutrition_portal.auth.tokens import issue_bearer_token
from nutrition_portal.exceptions import (
    ActiveOfficerConflict,
    BadRequest,
    DetailsAlreadyExist,
    DuplicateNIC,
    DuplicateUsername,
    NotFound,
    PasswordMismatch,
)


logger = logging.getLogger(__name__)
audit = logging.getLogger("nutrition_portal.audit")


@dataclass
class ProvisioningResult:
    """Outcome of a successful account creation."""
    user: User
    state: ProvisioningState
    token: Optional[str] = None
    deactivated: Optional[User] = None

    @property
    def requires_additional_details(self) -> bool:
        return self.state == ProvisioningState.DETAIL_PENDING


# =============================================================================
# Queries
# =============================================================================

def get_details(db: DBSession, role: Role, user_id: int) -> Optional[RoleDetailBase]:
    model = detail_model_for(role)
    return db.exec(select(model).where(model.user_id == user_id)).first()


def provisioning_state(db: DBSession, user: User) -> ProvisioningState:
    """Derive the provisioning state from the account and its detail row."""
    if user.role.is_officer and get_details(db, user.role, user.id) is None:
        return ProvisioningState.DETAIL_PENDING
    return ProvisioningState.COMPLETE


def find_active_officer(
    db: DBSession,
    role: Role,
    exclude_user_id: Optional[int] = None,
    lock: bool = False,
) -> Optional[User]:
    """
    Return the active account holding an officer role, if any.

    With ``lock=True`` the row is selected FOR UPDATE on databases that
    support it, closing the window between the check and the write.
    """
    statement = select(User).where(User.role == role, User.is_active == ActiveFlag.YES)
    if exclude_user_id is not None:
        statement = statement.where(User.id != exclude_user_id)
    if lock:
        statement = statement.with_for_update()
    return db.exec(statement.order_by(User.id)).first()


def get_account(db: DBSession, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def list_accounts(db: DBSession) -> List[Tuple[User, ProvisioningState]]:
    users = db.exec(select(User).order_by(User.id)).all()
    return [(user, provisioning_state(db, user)) for user in users]


def list_pending_details(db: DBSession) -> List[User]:
    """Officer accounts stuck in DetailPending, oldest first."""
    pending = []
    for role in (Role.DEO, Role.VO):
        model = detail_model_for(role)
        statement = (
            select(User)
            .where(User.role == role)
            .where(~User.id.in_(select(model.user_id)))
        )
        pending.extend(db.exec(statement).all())
    return sorted(pending, key=lambda u: (u.created_at, u.id))


def get_active_officer(db: DBSession, role: Role) -> Tuple[User, RoleDetailBase]:
    """
    The on-duty officer for a role: active account with an active detail row.

    Raises:
        NotFound: No such officer
    """
    model = detail_model_for(role)
    statement = (
        select(User, model)
        .join(model, model.user_id == User.id)
        .where(User.role == role)
        .where(User.is_active == ActiveFlag.YES)
        .where(model.is_active == ActiveFlag.YES)
        .order_by(User.id)
    )
    row = db.exec(statement).first()
    if row is None:
        raise NotFound(f"No active {role.value.upper()} found")
    return row


# =============================================================================
# Account creation and edits
# =============================================================================

def _username_taken(db: DBSession, username: str, exclude_user_id: Optional[int] = None) -> bool:
    statement = select(User.id).where(User.username == username)
    if exclude_user_id is not None:
        statement = statement.where(User.id != exclude_user_id)
    return db.exec(statement).first() is not None


def _sync_detail_flag(db: DBSession, role: Role, user_id: int, flag: ActiveFlag) -> None:
    """Mirror an officer account's active flag onto its detail row, if any."""
    details = get_details(db, role, user_id) if role.is_officer else None
    if details is not None and details.is_active != flag:
        details.is_active = flag
        details.updated_at = utcnow()
        db.add(details)


def _deactivate(db: DBSession, user: User) -> None:
    """Deactivate an officer account together with its detail row."""
    user.is_active = ActiveFlag.NO
    user.updated_at = utcnow()
    db.add(user)
    _sync_detail_flag(db, user.role, user.id, ActiveFlag.NO)


def _claim_active_slot(
    db: DBSession,
    role: Role,
    exclude_user_id: Optional[int],
    deactivate_conflicting: bool,
) -> Optional[User]:
    """
    Make room for an active officer of ``role``.

    Returns:
        The account that was deactivated, or None if there was no conflict

    Raises:
        ActiveOfficerConflict: Another account is active and no confirmation was given
    """
    current = find_active_officer(db, role, exclude_user_id=exclude_user_id, lock=True)
    if current is None:
        return None

    if not deactivate_conflicting:
        raise ActiveOfficerConflict(role.value, current.id, current.username)

    _deactivate(db, current)
    return current


def _commit_account(db: DBSession, user: User) -> None:
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateUsername()
    db.refresh(user)


async def create_account(
    db: DBSession,
    *,
    username: str,
    password: str,
    confirm_password: Optional[str],
    role: Role,
    is_active: ActiveFlag = ActiveFlag.YES,
    deactivate_conflicting: bool = False,
) -> ProvisioningResult:
    """
    Start a provisioning attempt.

    Args:
        deactivate_conflicting: Explicit operator confirmation to deactivate the
            currently active officer of the same role

    Returns:
        ProvisioningResult; officer accounts carry a bearer token scoped to the
        new account for the detail-submission step

    Raises:
        PasswordMismatch, DuplicateUsername, ActiveOfficerConflict
    """
    if confirm_password != password:
        raise PasswordMismatch()

    if _username_taken(db, username):
        raise DuplicateUsername()

    deactivated = None
    if role.is_officer and is_active == ActiveFlag.YES:
        try:
            deactivated = _claim_active_slot(db, role, None, deactivate_conflicting)
        except ActiveOfficerConflict as conflict:
            db.rollback()
            audit.info(
                "provisioning.conflict",
                extra={"role": role.value, "active_user_id": conflict.active_user_id},
            )
            raise

    now = utcnow()
    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    _commit_account(db, user)

    if deactivated is not None:
        db.refresh(deactivated)
        audit.info(
            "provisioning.conflict_resolved",
            extra={"role": role.value, "deactivated_user_id": deactivated.id, "new_user_id": user.id},
        )

    audit.info("provisioning.account_created", extra={"user_id": user.id, "role": role.value})

    if not role.is_officer:
        return ProvisioningResult(user=user, state=ProvisioningState.COMPLETE, deactivated=deactivated)

    token, _ = issue_bearer_token(user.id, user.role)
    return ProvisioningResult(
        user=user,
        state=ProvisioningState.DETAIL_PENDING,
        token=token,
        deactivated=deactivated,
    )


async def update_account(
    db: DBSession,
    user_id: int,
    *,
    username: Optional[str] = None,
    password: Optional[str] = None,
    confirm_password: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[ActiveFlag] = None,
    deactivate_conflicting: bool = False,
) -> Tuple[User, Optional[User]]:
    """
    Apply an admin edit to an account.

    A missing/blank password keeps the stored hash. The password check runs
    before anything is read or written.

    Returns:
        (updated account, account deactivated to make room or None)
    """
    if (password or confirm_password) and password != confirm_password:
        raise PasswordMismatch()

    user = get_account(db, user_id)

    if username and username != user.username and _username_taken(db, username, user.id):
        raise DuplicateUsername()

    new_role = role or user.role
    new_active = is_active or user.is_active

    deactivated = None
    if new_role.is_officer and new_active == ActiveFlag.YES:
        try:
            deactivated = _claim_active_slot(db, new_role, user.id, deactivate_conflicting)
        except ActiveOfficerConflict:
            db.rollback()
            raise

    if username:
        user.username = username
    if password:
        user.password_hash = hash_password(password)
    if new_active != user.is_active:
        _sync_detail_flag(db, new_role, user.id, new_active)
    user.role = new_role
    user.is_active = new_active
    user.updated_at = utcnow()
    _commit_account(db, user)

    audit.info(
        "provisioning.account_updated",
        extra={
            "user_id": user.id,
            "password_changed": bool(password),
            "deactivated_user_id": deactivated.id if deactivated else None,
        },
    )
    return user, deactivated


# =============================================================================
# Officer details
# =============================================================================

def _officer_account(db: DBSession, role: Role, user_id: int) -> User:
    user = get_account(db, user_id)
    if user.role != role:
        raise BadRequest(f"User is not a {role.label}")
    return user


def _nic_taken(db: DBSession, role: Role, nic_number: str, exclude_user_id: Optional[int] = None) -> bool:
    model = detail_model_for(role)
    statement = select(model.id).where(model.nic_number == nic_number)
    if exclude_user_id is not None:
        statement = statement.where(model.user_id != exclude_user_id)
    return db.exec(statement).first() is not None


def _commit_details(db: DBSession, details: RoleDetailBase, role: Role) -> None:
    """
    Commit a detail row; unique-index violations from a concurrent writer
    are reported the same way as the pre-checks report them.
    """
    user_id, nic_number = details.user_id, details.nic_number
    db.add(details)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if _nic_taken(db, role, nic_number, exclude_user_id=user_id):
            raise DuplicateNIC()
        raise DetailsAlreadyExist(f"{role.value.upper()} details already exist for this user")
    db.refresh(details)


async def create_role_details(db: DBSession, role: Role, user_id: int, fields: Dict) -> RoleDetailBase:
    """
    Complete an officer account (DetailPending -> Complete).

    Raises:
        NotFound: Account does not exist
        BadRequest: Account role does not match
        DetailsAlreadyExist: Account is already complete
        DuplicateNIC: NIC number used by another officer of the same role
    """
    _officer_account(db, role, user_id)

    if get_details(db, role, user_id) is not None:
        raise DetailsAlreadyExist(f"{role.value.upper()} details already exist for this user")

    if _nic_taken(db, role, fields["nic_number"]):
        raise DuplicateNIC()

    now = utcnow()
    model = detail_model_for(role)
    details = model(user_id=user_id, created_at=now, updated_at=now, **fields)
    _commit_details(db, details, role)

    audit.info("provisioning.details_created", extra={"user_id": user_id, "role": role.value})
    return details


async def get_role_details(db: DBSession, role: Role, user_id: int) -> Tuple[User, RoleDetailBase]:
    details = get_details(db, role, user_id)
    if details is None:
        raise NotFound(f"{role.value.upper()} details not found")
    return get_account(db, user_id), details


async def update_role_details(
    db: DBSession, role: Role, user_id: int, fields: Dict
) -> Tuple[RoleDetailBase, bool]:
    """
    Update an officer's details, creating the row if it is missing.

    Returns:
        (details, created)
    """
    _officer_account(db, role, user_id)

    details = get_details(db, role, user_id)
    if details is None:
        return await create_role_details(db, role, user_id, fields), True

    if fields["nic_number"] != details.nic_number and _nic_taken(db, role, fields["nic_number"], user_id):
        raise DuplicateNIC()

    for key, value in fields.items():
        setattr(details, key, value)
    details.updated_at = utcnow()
    _commit_details(db, details, role)

    audit.info("provisioning.details_updated", extra={"user_id": user_id, "role": role.value})
    return details, False
