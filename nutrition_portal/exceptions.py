"""
Nutrition Portal - Error Taxonomy

Domain exceptions raised by services and the request gate.
Every error carries an HTTP status, a stable error code and a human-readable
message; app.py renders them as ``{"success": false, "message": ...}``.
"""

from typing import Any, Dict, List, Optional


class PortalError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = 500
    error_code: str = "server_error"
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
        }
        body.update(self.extra)
        return body


class ValidationFailed(PortalError):
    """Field-level validation failure; ``errors`` is a list of path/message pairs."""

    status_code = 400
    error_code = "validation_failed"
    default_message = "Validation error"

    def __init__(self, errors: Optional[List[Dict[str, str]]] = None, message: Optional[str] = None):
        super().__init__(message, errors=errors or [])


class PasswordMismatch(ValidationFailed):
    error_code = "password_mismatch"

    def __init__(self, path: str = "confirmPassword"):
        super().__init__(
            errors=[{"path": path, "message": "Passwords don't match"}],
            message="Passwords don't match",
        )


class DuplicateUsername(PortalError):
    status_code = 409
    error_code = "duplicate_username"
    default_message = "Username already exists"


class DuplicateNIC(PortalError):
    status_code = 409
    error_code = "duplicate_nic"
    default_message = "NIC number already exists"


class DetailsAlreadyExist(PortalError):
    status_code = 409
    error_code = "details_already_exist"
    default_message = "Details already exist for this user"


class ActiveOfficerConflict(PortalError):
    """Another account of the same officer role is already active."""

    status_code = 409
    error_code = "active_officer_conflict"

    def __init__(self, role: str, active_user_id: int, active_username: str):
        super().__init__(
            f"An active {role} account already exists ({active_username}). "
            "Deactivate it to continue.",
            activeUser={"id": active_user_id, "username": active_username},
        )
        self.active_user_id = active_user_id
        self.active_username = active_username


class Unauthenticated(PortalError):
    status_code = 401
    error_code = "unauthenticated"
    default_message = "No token, authorization denied"


class LoginFailed(Unauthenticated):
    error_code = "login_failed"
    default_message = "Login failed"


class Forbidden(PortalError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Access denied"


class DetailsRequired(Forbidden):
    error_code = "details_required"
    default_message = "Officer details must be completed before using this dashboard"


class ForgeryRejected(PortalError):
    status_code = 403
    error_code = "forgery_rejected"
    default_message = "Invalid or missing CSRF token"


class NotFound(PortalError):
    status_code = 404
    error_code = "not_found"
    default_message = "Not found"


class BadRequest(PortalError):
    """Request is well-formed but cannot be applied in the current state."""

    status_code = 400
    error_code = "bad_request"
    default_message = "Bad request"
