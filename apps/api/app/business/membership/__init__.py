from app.business.membership.api import router
from app.business.membership.errors import (
    AlreadyOnHold,
    HoldNotActive,
    HoldNotFound,
    InvalidWindow,
    MembershipHoldError,
    ServiceNotFound,
    StoreUnavailable,
    SweepRecordTimeout,
)
from app.business.membership.models import Member, MemberService, MembershipHold
from app.business.membership.scheduler import ResumeScheduler, resume_scheduler
from app.business.membership.schemas import HoldRead, PlaceHoldRequest, SweepRecordResult, SweepReport
from app.business.membership.service import HoldService, freeze_duration_days, hold_service

__all__ = [
    "router",
    "AlreadyOnHold",
    "HoldNotActive",
    "HoldNotFound",
    "InvalidWindow",
    "MembershipHoldError",
    "ServiceNotFound",
    "StoreUnavailable",
    "SweepRecordTimeout",
    "Member",
    "MemberService",
    "MembershipHold",
    "HoldRead",
    "PlaceHoldRequest",
    "SweepRecordResult",
    "SweepReport",
    "HoldService",
    "hold_service",
    "freeze_duration_days",
    "ResumeScheduler",
    "resume_scheduler",
]
