from __future__ import annotations

import uuid


class MembershipHoldError(Exception):
    """Base error for hold placement, release and resume failures."""

    code = "membership_hold_error"


class InvalidWindow(MembershipHoldError):
    code = "invalid_window"


class AlreadyOnHold(MembershipHoldError):
    code = "already_on_hold"

    def __init__(self, service_id: uuid.UUID, hold_status: str, is_active: bool) -> None:
        self.service_id = service_id
        self.hold_status = hold_status
        self.is_active = is_active
        if hold_status != "none":
            message = f"service {service_id} is already {hold_status}"
        else:
            message = f"service {service_id} is not active"
        super().__init__(message)


class ServiceNotFound(MembershipHoldError):
    code = "service_not_found"

    def __init__(self, service_id: uuid.UUID) -> None:
        self.service_id = service_id
        super().__init__(f"service {service_id} not found")


class HoldNotFound(MembershipHoldError):
    code = "hold_not_found"

    def __init__(self, hold_id: uuid.UUID) -> None:
        self.hold_id = hold_id
        super().__init__(f"hold {hold_id} not found")


class HoldNotActive(MembershipHoldError):
    code = "hold_not_active"

    def __init__(self, hold_id: uuid.UUID) -> None:
        self.hold_id = hold_id
        super().__init__(f"hold {hold_id} is no longer active")


class StoreUnavailable(MembershipHoldError):
    """Raised when a backing store call fails for transient reasons."""

    code = "store_unavailable"


class SweepRecordTimeout(MembershipHoldError):
    code = "timeout"

    def __init__(self, hold_id: uuid.UUID, timeout_seconds: float) -> None:
        self.hold_id = hold_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"hold {hold_id} exceeded the {timeout_seconds}s processing budget")
