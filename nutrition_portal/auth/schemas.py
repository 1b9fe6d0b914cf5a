"""
Nutrition Portal - Authentication Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nutrition_portal.auth.models import ActiveFlag, ProvisioningState, Role


USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$")
PASSWORD_POLICY_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, and one number"
)


def validate_username(value: str) -> str:
    """Username rules shared by registration and edits."""
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(value) > 50:
        raise ValueError("Username cannot exceed 50 characters")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return value


def validate_password_strength(value: str) -> str:
    """Password policy for new and changed account passwords."""
    if len(value) < 6 or not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_POLICY_MESSAGE)
    if len(value) > 100:
        raise ValueError("Password cannot exceed 100 characters")
    return value


def coerce_active_flag(value: Any) -> Any:
    """Accept booleans from older clients alongside "yes"/"no"."""
    if isinstance(value, bool):
        return ActiveFlag.YES if value else ActiveFlag.NO
    return value


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: str = Field(..., min_length=1, max_length=50, description="Account username")
    password: str = Field(..., min_length=1, max_length=100, description="Account password")


class UserResponse(BaseModel):
    """Account as exposed by the API (never includes the password hash)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: Role
    is_active: ActiveFlag
    created_at: datetime
    updated_at: datetime
    provisioning_state: Optional[ProvisioningState] = None


class LoginResponse(BaseModel):
    """Response body for successful login."""
    success: bool = True
    message: str = "Login successful"
    token: str = Field(..., description="Bearer token for Authorization / x-auth-token")
    user: UserResponse
    requiresAdditionalDetails: bool = False


class PasswordResetRequest(BaseModel):
    """Request body for POST /auth/reset-password."""
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, max_length=50)
    old_password: str = Field(..., alias="oldPassword", min_length=1, max_length=100)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=100)
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class MessageResponse(BaseModel):
    """Generic success envelope."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str
    error_code: Optional[str] = None
    request_id: Optional[str] = None
    errors: Optional[List[Dict[str, str]]] = None
    activeUser: Optional[Dict[str, Any]] = None


class RoleValidatorMixin(BaseModel):
    """Parses role aliases (dataEntryOfficer/verificationOfficer) at the boundary."""

    @field_validator("role", mode="before", check_fields=False)
    @classmethod
    def parse_role(cls, v):
        if v is None or v == "":
            return None
        return Role.parse(v)
