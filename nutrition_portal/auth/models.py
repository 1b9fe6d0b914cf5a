"""
Nutrition Portal - Credential Store Models

SQLModel-based models for accounts, officer detail records and revoked tokens.
Uses PostgreSQL/MySQL in production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Bearer tokens are not stored; only revoked token IDs are kept
- All timestamps in UTC
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type, Union

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Role(str, Enum):
    """
    Canonical account roles.

    The dashboards historically spelled officer roles as ``dataEntryOfficer``
    and ``verificationOfficer``; those spellings are accepted at the API
    boundary only (see ``Role.parse``) and never stored.
    """
    ADMIN = "admin"
    DEO = "deo"
    VO = "vo"

    @classmethod
    def parse(cls, value: Union[str, "Role"]) -> "Role":
        if isinstance(value, Role):
            return value
        try:
            return ROLE_ALIASES[value]
        except KeyError:
            raise ValueError("Role must be one of: admin, deo, vo")

    @property
    def is_officer(self) -> bool:
        return self in (Role.DEO, Role.VO)

    @property
    def label(self) -> str:
        return ROLE_TITLES[self]


ROLE_ALIASES = {
    "admin": Role.ADMIN,
    "deo": Role.DEO,
    "vo": Role.VO,
    "dataEntryOfficer": Role.DEO,
    "verificationOfficer": Role.VO,
}

ROLE_TITLES = {
    Role.ADMIN: "Administrator",
    Role.DEO: "Data Entry Officer",
    Role.VO: "Verification Officer",
}


class ActiveFlag(str, Enum):
    """Active flag as stored and exchanged on the wire."""
    YES = "yes"
    NO = "no"


class ProvisioningState(str, Enum):
    """
    Derived provisioning state of an account.

    Officer accounts without a detail row are DETAIL_PENDING; everything
    else is COMPLETE.
    """
    DETAIL_PENDING = "detail_pending"
    COMPLETE = "complete"


class User(SQLModel, table=True):
    """
    Login-capable account.

    Attributes:
        id: Numeric identifier (autoincrement, immutable)
        username: Login identifier (unique, case-sensitive)
        password_hash: bcrypt hash (never returned by the API)
        role: Canonical role
        is_active: "yes"/"no"; at most one active account per officer role
        created_at: Account creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """
    __tablename__ = "users"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    username: str = Field(
        sa_column=Column(String(50), unique=True, index=True, nullable=False),
        description="Login identifier",
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="bcrypt password hash",
    )
    role: Role = Field(
        sa_column=Column(
            SQLEnum(Role, name="user_role", values_callable=_enum_values),
            nullable=False,
            index=True,
        ),
    )
    is_active: ActiveFlag = Field(
        default=ActiveFlag.YES,
        sa_column=Column(
            SQLEnum(ActiveFlag, name="user_active", values_callable=_enum_values),
            nullable=False,
            default=ActiveFlag.YES,
        ),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    )


class RoleDetailBase(SQLModel):
    """
    Extended officer profile shared by DEO and VO detail tables.

    Columns are declared through Field() (sa_type rather than sa_column)
    so both table subclasses get their own Column objects. NIC numbers are
    unique within each role table.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True, nullable=False)
    full_name: str = Field(max_length=100, nullable=False)
    nic_number: str = Field(max_length=50, unique=True, index=True, nullable=False)
    tel_number: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    is_active: ActiveFlag = Field(default=ActiveFlag.YES)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime,
        nullable=False,
        sa_column_kwargs={"onupdate": utcnow},
    )


class DEODetail(RoleDetailBase, table=True):
    """Profile of a data-entry officer account."""
    __tablename__ = "deo_details"


class VODetail(RoleDetailBase, table=True):
    """Profile of a verification officer account."""
    __tablename__ = "vo_details"


DETAIL_MODELS = {
    Role.DEO: DEODetail,
    Role.VO: VODetail,
}


def detail_model_for(role: Role) -> Type[RoleDetailBase]:
    """Return the detail table model for an officer role."""
    try:
        return DETAIL_MODELS[role]
    except KeyError:
        raise ValueError(f"Role {role.value} has no detail record")


class RevokedToken(SQLModel, table=True):
    """
    Bearer token revoked at logout.

    Tokens are otherwise stateless; the gate rejects any token whose
    jti appears here.
    """
    __tablename__ = "revoked_tokens"

    jti: str = Field(
        sa_column=Column(String(64), primary_key=True),
        description="Token ID from the JWT",
    )
    user_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    revoked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
