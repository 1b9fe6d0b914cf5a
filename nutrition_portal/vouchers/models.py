"""
Nutrition Portal - Voucher Models

A voucher is an uploaded document (stored elsewhere; only its URL is kept)
submitted by a data-entry officer and routed to the active verification
officer for approval.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, Enum as SQLEnum, String, Text

from nutrition_portal.auth.models import _enum_values, utcnow


class VoucherStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Voucher(SQLModel, table=True):
    """
    Submitted voucher awaiting or past verification.

    Attributes:
        file_path: URL of the uploaded file
        deo_id: Submitting data-entry officer
        vo_id: Verification officer the voucher was routed to
        status: pending until the VO approves or rejects it
        comment: Optional VO remark
    """
    __tablename__ = "vouchers"

    id: Optional[int] = Field(default=None, primary_key=True)
    file_path: str = Field(sa_column=Column(String(1024), nullable=False))
    deo_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    vo_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    status: VoucherStatus = Field(
        default=VoucherStatus.PENDING,
        sa_column=Column(
            SQLEnum(VoucherStatus, name="voucher_status", values_callable=_enum_values),
            nullable=False,
            default=VoucherStatus.PENDING,
        ),
    )
    comment: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    )
