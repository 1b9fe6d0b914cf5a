"""
Nutrition Portal - Request Gate Dependencies

FastAPI dependencies for authentication and authorization.
The anti-forgery check runs earlier, in gateway.csrf.CSRFMiddleware.

Usage:
    @router.get("/protected")
    async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

    @router.put("/users/{user_id}")
    @require_permission(Permission.MANAGE_USERS)
    async def admin_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

Security:
- Bearer token accepted from Authorization: Bearer or x-auth-token
- Token signature, revocation and account existence checked on every request
- RBAC is deny-by-default; Unauthenticated (401) and Forbidden (403) are distinct
"""

import logging
from functools import wraps
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session as DBSession, select

from nutrition_portal.auth.database import get_db
from nutrition_portal.auth.models import Role, User, detail_model_for
from nutrition_portal.auth.revocation import is_revoked
from nutrition_portal.auth.tokens import InvalidTokenError, validate_bearer_token
from nutrition_portal.exceptions import DetailsRequired, Forbidden, Unauthenticated
from nutrition_portal.gateway.rbac import Permission, RBACPolicy


audit = logging.getLogger("nutrition_portal.audit")


# HTTP Bearer scheme for token extraction
security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """
    Represents a validated, authenticated account.

    Available in route handlers via Depends(get_current_user).
    """
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    username: str
    role: Role
    token_id: str
    csrf_verified: bool = True


def extract_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials],
    x_auth_token: Optional[str],
) -> Optional[str]:
    """
    Pick the bearer token from either accepted header.

    Raises:
        Unauthenticated: Both headers are present and carry different tokens
    """
    bearer = credentials.credentials.strip() if credentials else None
    legacy = x_auth_token.strip() if x_auth_token else None

    if bearer and legacy and bearer != legacy:
        raise Unauthenticated("Conflicting authentication tokens")

    return bearer or legacy or None


async def get_current_user(
    request: Request,
    db: DBSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_auth_token: Optional[str] = Header(None, alias="x-auth-token"),
) -> AuthenticatedUser:
    """
    Validate request authentication and return the acting account.

    This dependency performs:
    1. Extract token from Authorization or x-auth-token
    2. Validate signature (and expiry, when configured)
    3. Reject revoked token IDs
    4. Confirm the account still exists

    Raises:
        Unauthenticated: Missing, invalid or revoked token, or unknown account
    """
    token = extract_bearer_token(credentials, x_auth_token)
    if not token:
        raise Unauthenticated("No token, authorization denied")

    try:
        payload = validate_bearer_token(token)
    except InvalidTokenError:
        raise Unauthenticated("Token is not valid")

    if await is_revoked(db, payload.jti):
        raise Unauthenticated("Token has been revoked")

    account = db.get(User, payload.account_id)
    if account is None:
        raise Unauthenticated("User not found")

    return AuthenticatedUser(
        user_id=account.id,
        username=account.username,
        role=payload.role,
        token_id=payload.jti,
        csrf_verified=getattr(request.state, "csrf_verified", True),
    )


def require_permission(permission: Permission):
    """
    Decorator to enforce permission requirements on routes.

    The decorated route must take ``user: AuthenticatedUser = Depends(get_current_user)``.

    Raises:
        Unauthenticated: No user injected
        Forbidden: Role lacks the permission
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            user: Optional[AuthenticatedUser] = kwargs.get("user")

            if user is None:
                raise Unauthenticated("Authentication required")

            if not RBACPolicy().has_permission(user.role, permission):
                raise Forbidden(f"Permission denied: {permission.value}")

            if not user.csrf_verified:
                # advisory mode let an unverified mutation through
                audit.warning(
                    "gateway.csrf_unverified",
                    extra={"user_id": user.user_id, "permission": permission.value},
                )

            return await func(*args, **kwargs)
        return wrapper
    return decorator


def require_role(*roles: Role):
    """
    Decorator requiring one of the given roles.

    Usage:
        @require_role(Role.ADMIN)
        async def admin_only(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            user: Optional[AuthenticatedUser] = kwargs.get("user")

            if user is None:
                raise Unauthenticated("Authentication required")

            if user.role not in roles:
                raise Forbidden(f"Requires role: {', '.join(r.value for r in roles)}")

            return await func(*args, **kwargs)
        return wrapper
    return decorator


def ensure_self_or_permission(
    user: AuthenticatedUser,
    target_user_id: int,
    permission: Permission,
    self_permission: Optional[Permission] = None,
) -> None:
    """
    Allow an account to act on itself, or anyone holding ``permission``.

    With ``self_permission`` set, acting on oneself also requires that grant.

    Raises:
        Forbidden: Neither condition holds
    """
    policy = RBACPolicy()
    if user.user_id == target_user_id:
        if self_permission is None or policy.has_permission(user.role, self_permission):
            return
    if policy.has_permission(user.role, permission):
        return
    raise Forbidden("Access denied. You can only access your own details unless you are an admin.")


async def require_complete_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> AuthenticatedUser:
    """
    Dependency for officer dashboard operations.

    Officer accounts still in DetailPending are refused.
    """
    if user.role.is_officer:
        model = detail_model_for(user.role)
        statement = select(model.id).where(model.user_id == user.user_id)
        if db.exec(statement).first() is None:
            raise DetailsRequired()
    return user
