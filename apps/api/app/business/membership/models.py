from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


HOLD_STATUS_NONE = "none"
HOLD_STATUS_FROZEN = "frozen"
HOLD_STATUS_SUSPENDED = "suspended"

ACTION_FREEZE = "freeze"
ACTION_SUSPEND = "suspend"

HOLD_ACTIVE = "active"
HOLD_COMPLETED = "completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utcnow().date()


class Member(Base):
    __tablename__ = "member"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class MemberService(Base):
    __tablename__ = "member_service"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False)
    zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subscription_plan: Mapped[str | None] = mapped_column(String(64), nullable=True)
    start_date: Mapped[date] = mapped_column(Date(), nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    hold_status: Mapped[str] = mapped_column(String(16), nullable=False, default=HOLD_STATUS_NONE, server_default=HOLD_STATUS_NONE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    member: Mapped[Member] = relationship(Member, lazy="joined")

    __table_args__ = (
        CheckConstraint("hold_status IN ('none', 'frozen', 'suspended')", name="ck_member_service_hold_status"),
        Index("ix_member_service_member", "member_id"),
    )


class MembershipHold(Base):
    __tablename__ = "membership_hold"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    hold_start: Mapped[date] = mapped_column(Date(), nullable=False)
    hold_end: Mapped[date | None] = mapped_column(Date(), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=HOLD_ACTIVE, server_default=HOLD_ACTIVE)
    reason: Mapped[str | None] = mapped_column(Text(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    resumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resumed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    __table_args__ = (
        CheckConstraint("action_type IN ('freeze', 'suspend')", name="ck_membership_hold_action_type"),
        CheckConstraint("status IN ('active', 'completed')", name="ck_membership_hold_status"),
        CheckConstraint(
            "(action_type = 'freeze' AND hold_end IS NOT NULL AND hold_end > hold_start)"
            " OR (action_type = 'suspend' AND hold_end IS NULL)",
            name="ck_membership_hold_window",
        ),
        Index("ix_membership_hold_due", "action_type", "status", "hold_end"),
        Index("ix_membership_hold_service", "service_id", "created_at"),
    )
