"""
Nutrition Portal - Voucher Schemas
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nutrition_portal.vouchers.models import VoucherStatus


class VoucherCreateRequest(BaseModel):
    """Request body for POST /vouchers."""
    file_path: str = Field(..., max_length=1024, description="URL returned by the upload service")

    @field_validator("file_path")
    @classmethod
    def file_path_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("File path is required")
        return v


class VoucherVerifyRequest(BaseModel):
    """Request body for PUT /vouchers/{id}/verify."""
    status: Literal["approved", "rejected"]
    comment: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def blank_comment(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()


class VoucherOut(BaseModel):
    """Voucher with the names of both parties."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_path: str
    deo_id: int
    vo_id: int
    status: VoucherStatus
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deo_username: Optional[str] = None
    vo_username: Optional[str] = None
    deo_full_name: Optional[str] = None
    vo_full_name: Optional[str] = None


class VoucherResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: VoucherOut


class VoucherListResponse(BaseModel):
    success: bool = True
    data: List[VoucherOut]
