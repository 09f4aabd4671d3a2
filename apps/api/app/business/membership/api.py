from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from app.business.membership.errors import MembershipHoldError
from app.business.membership.scheduler import resume_scheduler
from app.business.membership.schemas import (
    AuditEntryRead,
    HoldActionType,
    HoldPreview,
    HoldPreviewRequest,
    HoldRead,
    HoldRecordStatus,
    PlaceHoldRequest,
    ReleaseHoldRequest,
    ServiceRecordRead,
    SweepReport,
)
from app.business.membership.service import hold_service
from app.context import get_correlation_id
from app.core.auth import StaffUser, get_current_user
from app.core.database import get_db
from app.services.audit import audit_sink


router = APIRouter(prefix="/api/membership", tags=["membership.holds"])

_STATUS_BY_CODE = {
    "invalid_window": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "already_on_hold": status.HTTP_409_CONFLICT,
    "hold_not_active": status.HTTP_409_CONFLICT,
    "service_not_found": status.HTTP_404_NOT_FOUND,
    "hold_not_found": status.HTTP_404_NOT_FOUND,
    "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(request: Request, exc: MembershipHoldError) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(code=exc.code, message=str(exc), details=None, correlation_id=correlation_id)
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=payload.__dict__,
    )


@router.post("/holds", response_model=HoldRead, status_code=status.HTTP_201_CREATED)
def place_hold(
    request: Request,
    payload: PlaceHoldRequest,
    db: Session = Depends(get_db),
    user: StaffUser = Depends(get_current_user),
) -> HoldRead | JSONResponse:
    try:
        return hold_service.place_hold(db, payload, user.actor)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.post("/holds/preview", response_model=HoldPreview)
def preview_hold(
    request: Request,
    payload: HoldPreviewRequest,
    db: Session = Depends(get_db),
) -> HoldPreview | JSONResponse:
    try:
        return hold_service.preview_hold(db, payload)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.post("/holds/resume-sweep", response_model=SweepReport)
def run_resume_sweep(
    request: Request,
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> SweepReport | JSONResponse:
    session_factory = sessionmaker(bind=db.get_bind(), autocommit=False, autoflush=False)
    try:
        return resume_scheduler.run_resume_sweep(session_factory, as_of)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.get("/holds", response_model=list[HoldRead])
def list_holds(
    service_id: uuid.UUID | None = Query(default=None),
    member_id: uuid.UUID | None = Query(default=None),
    status_filter: HoldRecordStatus | None = Query(default=None, alias="status"),
    action_type: HoldActionType | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[HoldRead]:
    return hold_service.list_holds(
        db,
        service_id=service_id,
        member_id=member_id,
        status=status_filter,
        action_type=action_type,
        limit=limit,
    )


@router.get("/holds/{hold_id}", response_model=HoldRead)
def get_hold(request: Request, hold_id: uuid.UUID, db: Session = Depends(get_db)) -> HoldRead | JSONResponse:
    try:
        return hold_service.get_hold(db, hold_id)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.post("/holds/{hold_id}/release", response_model=HoldRead)
def release_hold(
    request: Request,
    hold_id: uuid.UUID,
    payload: ReleaseHoldRequest,
    db: Session = Depends(get_db),
    user: StaffUser = Depends(get_current_user),
) -> HoldRead | JSONResponse:
    try:
        return hold_service.release_hold(db, hold_id, payload, user.actor)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.get("/services/{service_id}", response_model=ServiceRecordRead)
def get_service_record(
    request: Request,
    service_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> ServiceRecordRead | JSONResponse:
    try:
        return hold_service.get_service_record(db, service_id)
    except MembershipHoldError as exc:
        return error_response(request, exc)


@router.get("/audit", response_model=list[AuditEntryRead])
def list_audit_entries(
    table_name: str | None = Query(default=None),
    record_id: str | None = Query(default=None),
    action_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[AuditEntryRead]:
    entries = audit_sink.list_entries(db, table_name=table_name, record_id=record_id, action_type=action_type, limit=limit)
    return [AuditEntryRead.model_validate(entry) for entry in entries]
