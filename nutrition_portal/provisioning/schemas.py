"""
Nutrition Portal - Provisioning Schemas

Request/response models for account creation, account edits and
officer detail records. CamelCase field names sent by the dashboards are
accepted as aliases.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nutrition_portal.auth.models import ActiveFlag, Role
from nutrition_portal.auth.schemas import (
    RoleValidatorMixin,
    UserResponse,
    coerce_active_flag,
    validate_password_strength,
    validate_username,
)


NIC_PATTERN = re.compile(r"^(\d{9}[VvXx]|\d{12})$")
TEL_PATTERN = re.compile(r"^[0-9+\-\s()]*$")


class RegisterRequest(RoleValidatorMixin):
    """Request body for POST /auth/register (admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    confirm_password: str = Field(..., alias="confirmPassword")
    role: Role
    is_active: ActiveFlag = Field(default=ActiveFlag.YES, alias="isActive")
    deactivate_conflicting: bool = Field(default=False, alias="deactivateConflicting")

    @field_validator("username")
    @classmethod
    def username_rules(cls, v):
        return validate_username(v)

    @field_validator("password")
    @classmethod
    def password_rules(cls, v):
        return validate_password_strength(v)

    @field_validator("is_active", mode="before")
    @classmethod
    def active_flag(cls, v):
        return coerce_active_flag(v)


class RegisterResponse(BaseModel):
    """Response body for a created account."""
    success: bool = True
    message: str
    user: UserResponse
    token: Optional[str] = None
    requiresAdditionalDetails: bool = False
    deactivatedUser: Optional[dict] = None


class UpdateUserRequest(RoleValidatorMixin):
    """
    Request body for PUT /users/{id}.

    Every field is optional; a blank password leaves the stored hash unchanged.
    """
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")
    role: Optional[Role] = None
    is_active: Optional[ActiveFlag] = Field(default=None, alias="isActive")
    deactivate_conflicting: bool = Field(default=False, alias="deactivateConflicting")

    @field_validator("username")
    @classmethod
    def username_rules(cls, v):
        if v is None or v == "":
            return None
        return validate_username(v)

    @field_validator("password")
    @classmethod
    def password_rules(cls, v):
        if v is None or v == "":
            return None
        return validate_password_strength(v)

    @field_validator("confirm_password")
    @classmethod
    def blank_confirmation(cls, v):
        return v or None

    @field_validator("is_active", mode="before")
    @classmethod
    def active_flag(cls, v):
        return coerce_active_flag(v)


class UserUpdateResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse
    deactivatedUser: Optional[dict] = None


class UserListResponse(BaseModel):
    """Account listing for admins."""
    success: bool = True
    users: List[UserResponse]
    total: int


class RoleDetailRequest(BaseModel):
    """
    Officer detail fields for POST/PUT /user-details/{role}.

    ``user_id`` may come from the body or from the URL.
    """
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(default=None, alias="userId", gt=0)
    full_name: str = Field(..., alias="fullName", max_length=100)
    nic_number: str = Field(..., alias="nicNumber", max_length=50)
    tel_number: Optional[str] = Field(default=None, alias="telNumber", max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    is_active: ActiveFlag = Field(default=ActiveFlag.YES, alias="isActive")

    @field_validator("full_name")
    @classmethod
    def full_name_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("nic_number")
    @classmethod
    def nic_format(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("NIC number is required")
        if not NIC_PATTERN.match(v):
            raise ValueError("NIC number must be 9 digits followed by V or X, or 12 digits")
        return v.upper()

    @field_validator("tel_number")
    @classmethod
    def tel_format(cls, v):
        if v is None or not v.strip():
            return None
        if not TEL_PATTERN.match(v):
            raise ValueError(
                "Telephone number can only contain numbers, +, -, spaces, and parentheses"
            )
        return v.strip()

    @field_validator("address")
    @classmethod
    def blank_address(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("is_active", mode="before")
    @classmethod
    def active_flag(cls, v):
        return coerce_active_flag(v)


class RoleDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    full_name: str
    nic_number: str
    tel_number: Optional[str] = None
    address: Optional[str] = None
    is_active: ActiveFlag
    created_at: datetime
    updated_at: datetime


class RoleDetailMutationResponse(BaseModel):
    success: bool = True
    message: str
    details: RoleDetailResponse


class UserDetails(UserResponse):
    """Account combined with its officer details."""
    details: RoleDetailResponse


class UserDetailsResponse(BaseModel):
    success: bool = True
    userDetails: UserDetails


class ActiveOfficer(BaseModel):
    id: int
    username: str
    role: Role
    is_active: ActiveFlag
    full_name: str
    nic_number: str
    tel_number: Optional[str] = None
    address: Optional[str] = None


class ActiveOfficerResponse(BaseModel):
    success: bool = True
    data: ActiveOfficer
