from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from app.business.membership.errors import StoreUnavailable
from app.business.membership.models import (
    ACTION_FREEZE,
    HOLD_ACTIVE,
    HOLD_COMPLETED,
    HOLD_STATUS_NONE,
    Member,
    MemberService,
    MembershipHold,
    utcnow,
)


@contextmanager
def store_call(store: str, operation: str) -> Iterator[None]:
    """Surface driver-level failures as ``StoreUnavailable``."""
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        raise StoreUnavailable(f"{store}.{operation} failed: {exc.__class__.__name__}") from exc


class MemberRepository:
    store = "member_directory"

    def get(self, session: Session, member_id: uuid.UUID) -> Member | None:
        with store_call(self.store, "get"):
            return session.get(Member, member_id)


class ServiceRecordRepository:
    store = "service_records"

    def get(self, session: Session, service_id: uuid.UUID) -> MemberService | None:
        with store_call(self.store, "get"):
            return session.get(MemberService, service_id, populate_existing=True)

    def place_on_hold(self, session: Session, service_id: uuid.UUID, *, hold_status: str, is_active: bool) -> bool:
        """Move an available service into ``hold_status``; False if it was not available."""
        with store_call(self.store, "place_on_hold"):
            result = session.execute(
                update(MemberService)
                .where(
                    and_(
                        MemberService.id == service_id,
                        MemberService.hold_status == HOLD_STATUS_NONE,
                        MemberService.is_active.is_(True),
                    )
                )
                .values(hold_status=hold_status, is_active=is_active, updated_at=utcnow())
            )
        return result.rowcount == 1

    def clear_hold(
        self,
        session: Session,
        service_id: uuid.UUID,
        *,
        expiry_date: date,
        is_active: bool | None = None,
    ) -> bool:
        changes: dict[str, Any] = {
            "hold_status": HOLD_STATUS_NONE,
            "expiry_date": expiry_date,
            "updated_at": utcnow(),
        }
        if is_active is not None:
            changes["is_active"] = is_active
        with store_call(self.store, "clear_hold"):
            result = session.execute(update(MemberService).where(MemberService.id == service_id).values(**changes))
        return result.rowcount == 1


class HoldRecordRepository:
    store = "hold_records"

    def add(self, session: Session, hold: MembershipHold) -> MembershipHold:
        with store_call(self.store, "add"):
            session.add(hold)
            session.flush()
        return hold

    def get(self, session: Session, hold_id: uuid.UUID) -> MembershipHold | None:
        with store_call(self.store, "get"):
            return session.get(MembershipHold, hold_id, populate_existing=True)

    def list_holds(
        self,
        session: Session,
        *,
        service_id: uuid.UUID | None = None,
        member_id: uuid.UUID | None = None,
        status: str | None = None,
        action_type: str | None = None,
        limit: int = 100,
    ) -> list[MembershipHold]:
        query = select(MembershipHold)
        if service_id is not None:
            query = query.where(MembershipHold.service_id == service_id)
        if member_id is not None:
            query = query.where(MembershipHold.member_id == member_id)
        if status is not None:
            query = query.where(MembershipHold.status == status)
        if action_type is not None:
            query = query.where(MembershipHold.action_type == action_type)
        query = query.order_by(MembershipHold.created_at.desc(), MembershipHold.id).limit(limit)
        with store_call(self.store, "list_holds"):
            return list(session.scalars(query).all())

    def list_due_freezes(self, session: Session, as_of: date) -> list[MembershipHold]:
        query = (
            select(MembershipHold)
            .where(
                and_(
                    MembershipHold.action_type == ACTION_FREEZE,
                    MembershipHold.status == HOLD_ACTIVE,
                    MembershipHold.hold_end <= as_of,
                )
            )
            .order_by(MembershipHold.hold_end, MembershipHold.created_at, MembershipHold.id)
        )
        with store_call(self.store, "list_due_freezes"):
            return list(session.scalars(query).all())

    def complete_if_active(
        self,
        session: Session,
        hold_id: uuid.UUID,
        *,
        resumed_by: str,
        resumed_at: datetime | None = None,
    ) -> bool:
        """Mark the hold completed only while it is still active.

        Both the resume sweep and manual releases go through this update, so
        whichever commits first wins and the other sees zero affected rows.
        """
        with store_call(self.store, "complete_if_active"):
            result = session.execute(
                update(MembershipHold)
                .where(and_(MembershipHold.id == hold_id, MembershipHold.status == HOLD_ACTIVE))
                .values(
                    status=HOLD_COMPLETED,
                    resumed_at=resumed_at or utcnow(),
                    resumed_by=resumed_by,
                    row_version=MembershipHold.row_version + 1,
                )
            )
        return result.rowcount == 1
