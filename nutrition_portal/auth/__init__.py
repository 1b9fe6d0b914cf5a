"""
Nutrition Portal - Authentication Package

- Stateless JWT bearer tokens with server-side revocation on logout
- bcrypt password hashing
- RBAC with deny-by-default
- Auth events on the nutrition_portal.audit logger
"""

from nutrition_portal.auth.models import User, Role, ActiveFlag
from nutrition_portal.auth.dependencies import get_current_user, require_permission
from nutrition_portal.auth.tokens import issue_bearer_token, validate_bearer_token

__all__ = [
    "User",
    "Role",
    "ActiveFlag",
    "get_current_user",
    "require_permission",
    "issue_bearer_token",
    "validate_bearer_token",
]
