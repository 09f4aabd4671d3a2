from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.business.membership.errors import (
    AlreadyOnHold,
    HoldNotActive,
    HoldNotFound,
    InvalidWindow,
    MembershipHoldError,
    ServiceNotFound,
    StoreUnavailable,
)
from app.business.membership.models import (
    ACTION_FREEZE,
    ACTION_SUSPEND,
    HOLD_ACTIVE,
    HOLD_STATUS_FROZEN,
    HOLD_STATUS_NONE,
    HOLD_STATUS_SUSPENDED,
    Member,
    MemberService,
    MembershipHold,
    utc_today,
)
from app.business.membership.repository import HoldRecordRepository, MemberRepository, ServiceRecordRepository
from app.business.membership.schemas import (
    HoldPreview,
    HoldPreviewRequest,
    HoldRead,
    PlaceHoldRequest,
    ReleaseHoldRequest,
    ServiceRecordRead,
)
from app.metrics import observe_hold_placed, observe_hold_rejected, observe_hold_released
from app.services.audit import AuditSink


logger = logging.getLogger("app.membership.holds")

HOLD_TABLE = "membership_hold"
SERVICE_TABLE = "member_service"


def freeze_duration_days(hold_start: date, hold_end: date) -> int:
    """Calendar days between start and end; 2025-01-01 to 2025-01-11 is 10."""
    return (hold_end - hold_start).days


def member_label(member: Member | None) -> tuple[str, str]:
    if member is None:
        return "Unknown", "N/A"
    return member.full_name, member.member_code


@dataclass(slots=True)
class HoldService:
    hold_repository: HoldRecordRepository = HoldRecordRepository()
    service_repository: ServiceRecordRepository = ServiceRecordRepository()
    member_repository: MemberRepository = MemberRepository()
    audit_sink: AuditSink = AuditSink()

    def place_hold(self, session: Session, payload: PlaceHoldRequest, actor: str) -> HoldRead:
        try:
            hold_end = self._validate_window(payload.action_type, payload.hold_start, payload.hold_end)
            service_record = self._get_available_service(session, payload.service_id)
        except MembershipHoldError as exc:
            session.rollback()
            observe_hold_rejected(exc.code)
            raise

        is_freeze = payload.action_type == ACTION_FREEZE
        hold = MembershipHold(
            member_id=service_record.member_id,
            service_id=service_record.id,
            action_type=payload.action_type,
            hold_start=payload.hold_start,
            hold_end=hold_end,
            status=HOLD_ACTIVE,
            reason=payload.reason,
            notes=payload.notes,
            created_by=actor,
        )

        try:
            self.hold_repository.add(session, hold)
            placed = self.service_repository.place_on_hold(
                session,
                service_record.id,
                hold_status=HOLD_STATUS_FROZEN if is_freeze else HOLD_STATUS_SUSPENDED,
                is_active=is_freeze,
            )
            if not placed:
                current = self.service_repository.get(session, service_record.id)
                raise AlreadyOnHold(
                    service_record.id,
                    current.hold_status if current is not None else HOLD_STATUS_NONE,
                    current.is_active if current is not None else False,
                )

            member = self.member_repository.get(session, service_record.member_id)
            self.audit_sink.append(
                session,
                table_name=SERVICE_TABLE,
                record_id=str(service_record.id),
                action_type="MEMBERSHIP_FREEZE" if is_freeze else "MEMBERSHIP_SUSPEND",
                action_by=actor,
                description=self._placement_description(member, payload.action_type, hold_end, payload.reason),
                details={
                    "hold_id": str(hold.id),
                    "hold_start": payload.hold_start.isoformat(),
                    "hold_end": hold_end.isoformat() if hold_end else None,
                },
            )
            session.commit()
        except MembershipHoldError as exc:
            session.rollback()
            observe_hold_rejected(exc.code)
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreUnavailable(f"hold placement failed: {exc.__class__.__name__}") from exc

        observe_hold_placed(payload.action_type)
        logger.info(
            "hold.placed",
            extra={
                "hold_id": str(hold.id),
                "service_id": str(service_record.id),
                "action_type": payload.action_type,
                "actor": actor,
            },
        )
        return self._to_hold_read(hold)

    def preview_hold(self, session: Session, payload: HoldPreviewRequest) -> HoldPreview:
        hold_end = self._validate_window(payload.action_type, payload.hold_start, payload.hold_end)
        service_record = self._get_available_service(session, payload.service_id)

        duration_days = None
        projected_expiry = None
        if hold_end is not None:
            duration_days = freeze_duration_days(payload.hold_start, hold_end)
            projected_expiry = service_record.expiry_date + timedelta(days=duration_days)

        return HoldPreview(
            service_id=service_record.id,
            action_type=payload.action_type,
            hold_start=payload.hold_start,
            hold_end=hold_end,
            duration_days=duration_days,
            current_expiry=service_record.expiry_date,
            projected_expiry=projected_expiry,
        )

    def release_hold(self, session: Session, hold_id: uuid.UUID, payload: ReleaseHoldRequest, actor: str) -> HoldRead:
        """End an active hold by hand: early unfreeze or reactivation after suspension."""
        hold = self._get_hold(session, hold_id)
        if hold.status != HOLD_ACTIVE:
            raise HoldNotActive(hold.id)
        service_record = self.service_repository.get(session, hold.service_id)
        if service_record is None:
            raise ServiceNotFound(hold.service_id)

        release_date = payload.release_date or utc_today()
        previous_expiry = service_record.expiry_date
        if hold.action_type == ACTION_FREEZE and hold.hold_end is not None:
            planned_days = freeze_duration_days(hold.hold_start, hold.hold_end)
            credited_days = min(max((release_date - hold.hold_start).days, 0), planned_days)
            new_expiry = previous_expiry + timedelta(days=credited_days)
            reactivate = None
            audit_action = "MEMBERSHIP_UNFREEZE"
        else:
            credited_days = 0
            new_expiry = previous_expiry
            reactivate = True
            audit_action = "MEMBERSHIP_REACTIVATE"

        try:
            if not self.hold_repository.complete_if_active(session, hold.id, resumed_by=actor):
                raise HoldNotActive(hold.id)
            self.service_repository.clear_hold(session, service_record.id, expiry_date=new_expiry, is_active=reactivate)

            member = self.member_repository.get(session, hold.member_id)
            name, code = member_label(member)
            if audit_action == "MEMBERSHIP_UNFREEZE":
                description = (
                    f"Unfroze membership for {name} ({code}) on {release_date:%d/%m/%Y}. "
                    f"Credited {credited_days} days. Expiry extended from {previous_expiry.isoformat()} "
                    f"to {new_expiry.isoformat()}."
                )
            else:
                description = f"Reactivated membership for {name} ({code}) on {release_date:%d/%m/%Y}."
            if payload.notes:
                description = f"{description} Notes: {payload.notes}"

            self.audit_sink.append(
                session,
                table_name=HOLD_TABLE,
                record_id=str(hold.id),
                action_type=audit_action,
                action_by=actor,
                description=description,
                details={
                    "service_id": str(service_record.id),
                    "release_date": release_date.isoformat(),
                    "credited_days": credited_days,
                    "previous_expiry": previous_expiry.isoformat(),
                    "new_expiry": new_expiry.isoformat(),
                },
            )
            session.commit()
        except MembershipHoldError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreUnavailable(f"hold release failed: {exc.__class__.__name__}") from exc

        observe_hold_released(hold.action_type)
        logger.info(
            "hold.released",
            extra={
                "hold_id": str(hold.id),
                "service_id": str(service_record.id),
                "action_type": hold.action_type,
                "actor": actor,
                "previous_expiry": previous_expiry.isoformat(),
                "new_expiry": new_expiry.isoformat(),
            },
        )
        return self._to_hold_read(self._get_hold(session, hold.id))

    def get_hold(self, session: Session, hold_id: uuid.UUID) -> HoldRead:
        return self._to_hold_read(self._get_hold(session, hold_id))

    def list_holds(
        self,
        session: Session,
        *,
        service_id: uuid.UUID | None = None,
        member_id: uuid.UUID | None = None,
        status: str | None = None,
        action_type: str | None = None,
        limit: int = 100,
    ) -> list[HoldRead]:
        holds = self.hold_repository.list_holds(
            session,
            service_id=service_id,
            member_id=member_id,
            status=status,
            action_type=action_type,
            limit=limit,
        )
        return [self._to_hold_read(hold) for hold in holds]

    def get_service_record(self, session: Session, service_id: uuid.UUID) -> ServiceRecordRead:
        service_record = self.service_repository.get(session, service_id)
        if service_record is None:
            raise ServiceNotFound(service_id)
        return ServiceRecordRead.model_validate(service_record)

    @staticmethod
    def _validate_window(action_type: str, hold_start: date, hold_end: date | None) -> date | None:
        if action_type == ACTION_FREEZE:
            if hold_end is None:
                raise InvalidWindow("freeze requires an end date")
            if hold_end <= hold_start:
                raise InvalidWindow(f"freeze end {hold_end.isoformat()} must be after start {hold_start.isoformat()}")
            return hold_end
        if action_type == ACTION_SUSPEND:
            if hold_end is not None:
                raise InvalidWindow("suspension cannot have an end date")
            return None
        raise InvalidWindow(f"unsupported action type {action_type}")

    def _get_available_service(self, session: Session, service_id: uuid.UUID) -> MemberService:
        service_record = self.service_repository.get(session, service_id)
        if service_record is None:
            raise ServiceNotFound(service_id)
        if service_record.hold_status != HOLD_STATUS_NONE or not service_record.is_active:
            raise AlreadyOnHold(service_record.id, service_record.hold_status, service_record.is_active)
        return service_record

    def _get_hold(self, session: Session, hold_id: uuid.UUID) -> MembershipHold:
        hold = self.hold_repository.get(session, hold_id)
        if hold is None:
            raise HoldNotFound(hold_id)
        return hold

    @staticmethod
    def _placement_description(member: Member | None, action_type: str, hold_end: date | None, reason: str | None) -> str:
        name, code = member_label(member)
        if action_type == ACTION_FREEZE and hold_end is not None:
            action = f"Froze membership for {name} ({code}) until {hold_end:%d/%m/%Y}"
        else:
            action = f"Suspended membership for {name} ({code})"
        return f"{action}. Reason: {reason or 'Not specified'}"

    @staticmethod
    def _to_hold_read(hold: MembershipHold) -> HoldRead:
        read = HoldRead.model_validate(hold)
        if hold.action_type == ACTION_FREEZE and hold.hold_end is not None:
            read.duration_days = freeze_duration_days(hold.hold_start, hold.hold_end)
        return read


hold_service = HoldService()
