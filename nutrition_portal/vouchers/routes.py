"""
Nutrition Portal - Voucher Routing

API endpoints:
- POST /vouchers              - DEO submits a voucher; routed to the active VO
- GET  /vouchers              - Vouchers visible to the caller, newest first
- GET  /vouchers/{id}         - Single voucher (parties and admins only)
- PUT  /vouchers/{id}/verify  - VO approves or rejects an assigned voucher

Submitting and verifying require a completed officer profile.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import aliased
from sqlmodel import Session as DBSession, select

from nutrition_portal.auth.database import get_db
from nutrition_portal.auth.dependencies import (
    AuthenticatedUser,
    get_current_user,
    require_complete_profile,
    require_permission,
)
from nutrition_portal.auth.models import DEODetail, Role, User, VODetail, utcnow
from nutrition_portal.auth.schemas import ErrorResponse
from nutrition_portal.exceptions import BadRequest, Forbidden, NotFound
from nutrition_portal.gateway.rbac import Permission
from nutrition_portal.provisioning.service import get_active_officer
from nutrition_portal.vouchers.models import Voucher, VoucherStatus
from nutrition_portal.vouchers.schemas import (
    VoucherCreateRequest,
    VoucherListResponse,
    VoucherOut,
    VoucherResponse,
    VoucherVerifyRequest,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vouchers", tags=["vouchers"])


def _voucher_query():
    """Voucher joined with both parties' usernames and full names."""
    deo_user = aliased(User)
    vo_user = aliased(User)
    return (
        select(
            Voucher,
            deo_user.username,
            vo_user.username,
            DEODetail.full_name,
            VODetail.full_name,
        )
        .outerjoin(deo_user, deo_user.id == Voucher.deo_id)
        .outerjoin(vo_user, vo_user.id == Voucher.vo_id)
        .outerjoin(DEODetail, DEODetail.user_id == Voucher.deo_id)
        .outerjoin(VODetail, VODetail.user_id == Voucher.vo_id)
    )


def _to_out(row) -> VoucherOut:
    voucher, deo_username, vo_username, deo_full_name, vo_full_name = row
    return VoucherOut(
        **VoucherOut.model_validate(voucher).model_dump(
            exclude={"deo_username", "vo_username", "deo_full_name", "vo_full_name"}
        ),
        deo_username=deo_username,
        vo_username=vo_username,
        deo_full_name=deo_full_name,
        vo_full_name=vo_full_name,
    )


def _load(db: DBSession, voucher_id: int) -> Optional[VoucherOut]:
    row = db.exec(_voucher_query().where(Voucher.id == voucher_id)).first()
    return _to_out(row) if row else None


@router.post(
    "",
    response_model=VoucherResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Submit a voucher to the active verification officer",
)
@require_permission(Permission.SUBMIT_VOUCHERS)
async def create_voucher(
    body: VoucherCreateRequest,
    user: AuthenticatedUser = Depends(require_complete_profile),
    db: DBSession = Depends(get_db),
):
    try:
        verifier, _ = get_active_officer(db, Role.VO)
    except NotFound:
        raise BadRequest("No active Verification Officer found")

    now = utcnow()
    voucher = Voucher(
        file_path=body.file_path,
        deo_id=user.user_id,
        vo_id=verifier.id,
        status=VoucherStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(voucher)
    db.commit()
    db.refresh(voucher)

    logger.info("Voucher %s routed from DEO %s to VO %s", voucher.id, user.user_id, verifier.id)

    return VoucherResponse(
        message="Voucher sent to Verification Officer successfully",
        data=_load(db, voucher.id),
    )


@router.get("", response_model=VoucherListResponse, summary="List vouchers")
@require_permission(Permission.READ_VOUCHERS)
async def list_vouchers(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """DEOs see their submissions, VOs their assignments, admins everything."""
    statement = _voucher_query()
    if user.role == Role.DEO:
        statement = statement.where(Voucher.deo_id == user.user_id)
    elif user.role == Role.VO:
        statement = statement.where(Voucher.vo_id == user.user_id)

    statement = statement.order_by(Voucher.created_at.desc(), Voucher.id.desc())
    return VoucherListResponse(data=[_to_out(row) for row in db.exec(statement).all()])


@router.get(
    "/{voucher_id}",
    response_model=VoucherResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get a voucher",
)
@require_permission(Permission.READ_VOUCHERS)
async def get_voucher(
    voucher_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    voucher = _load(db, voucher_id)
    if voucher is None:
        raise NotFound("Voucher not found")

    if user.role == Role.DEO and voucher.deo_id != user.user_id:
        raise Forbidden()
    if user.role == Role.VO and voucher.vo_id != user.user_id:
        raise Forbidden()

    return VoucherResponse(data=voucher)


@router.put(
    "/{voucher_id}/verify",
    response_model=VoucherResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Approve or reject an assigned voucher",
)
@require_permission(Permission.VERIFY_VOUCHERS)
async def verify_voucher(
    voucher_id: int,
    body: VoucherVerifyRequest,
    user: AuthenticatedUser = Depends(require_complete_profile),
    db: DBSession = Depends(get_db),
):
    statement = select(Voucher).where(Voucher.id == voucher_id, Voucher.vo_id == user.user_id)
    voucher = db.exec(statement).first()
    if voucher is None:
        raise NotFound("Voucher not found or not assigned to you")

    voucher.status = VoucherStatus(body.status)
    voucher.comment = body.comment
    voucher.updated_at = utcnow()
    db.add(voucher)
    db.commit()

    logger.info("Voucher %s %s by VO %s", voucher_id, body.status, user.user_id)

    return VoucherResponse(
        message=f"Voucher {body.status} successfully",
        data=_load(db, voucher_id),
    )
