from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


HoldActionType = Literal["freeze", "suspend"]
HoldRecordStatus = Literal["active", "completed"]
ServiceHoldStatus = Literal["none", "frozen", "suspended"]
SweepRecordStatus = Literal["resumed", "failed", "skipped"]


class PlaceHoldRequest(BaseModel):
    service_id: UUID
    action_type: HoldActionType
    hold_start: date
    hold_end: date | None = None
    reason: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=4000)


class HoldPreviewRequest(BaseModel):
    service_id: UUID
    action_type: HoldActionType
    hold_start: date
    hold_end: date | None = None


class HoldPreview(BaseModel):
    service_id: UUID
    action_type: HoldActionType
    hold_start: date
    hold_end: date | None
    duration_days: int | None
    current_expiry: date
    projected_expiry: date | None


class ReleaseHoldRequest(BaseModel):
    release_date: date | None = None
    notes: str | None = Field(default=None, max_length=4000)


class HoldRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    member_id: UUID
    service_id: UUID
    action_type: HoldActionType | str
    hold_start: date
    hold_end: date | None
    status: HoldRecordStatus | str
    reason: str | None
    notes: str | None
    created_by: str
    created_at: datetime
    resumed_at: datetime | None
    resumed_by: str | None
    duration_days: int | None = None


class ServiceRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    member_id: UUID
    zone: str | None
    subscription_plan: str | None
    start_date: date
    expiry_date: date
    is_active: bool
    hold_status: ServiceHoldStatus | str


class SweepRecordResult(BaseModel):
    hold_id: UUID
    service_id: UUID
    status: SweepRecordStatus
    error_code: str | None = None
    error: str | None = None
    member_name: str | None = None
    duration_days: int | None = None
    previous_expiry: date | None = None
    new_expiry: date | None = None


class SweepReport(BaseModel):
    sweep_id: str
    as_of: date
    started_at: datetime
    finished_at: datetime
    total: int
    succeeded: int
    failed: int
    skipped: int
    results: list[SweepRecordResult] = Field(default_factory=list)


class AuditEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    table_name: str
    record_id: str | None
    action_type: str
    action_by: str
    description: str | None
    details: dict[str, Any]
    correlation_id: str | None
    timestamp: datetime
