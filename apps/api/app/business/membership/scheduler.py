from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from opentelemetry.trace import Status, StatusCode
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.business.membership.errors import MembershipHoldError, ServiceNotFound, StoreUnavailable, SweepRecordTimeout
from app.business.membership.models import HOLD_ACTIVE, MembershipHold, utc_today
from app.business.membership.repository import HoldRecordRepository, MemberRepository, ServiceRecordRepository
from app.business.membership.schemas import SweepRecordResult, SweepReport
from app.business.membership.service import HOLD_TABLE, freeze_duration_days, member_label
from app.context import bind_correlation_id
from app.core.config import get_settings
from app.metrics import observe_sweep, observe_sweep_record
from app.otel import get_tracer
from app.services.audit import AuditSink


logger = logging.getLogger("app.membership.sweep")
tracer = get_tracer("app.membership.sweep")


@dataclass(slots=True)
class _RecordDeadline:
    hold_id: uuid.UUID
    timeout_seconds: float
    clock: Callable[[], float]
    started: float = 0.0

    def __post_init__(self) -> None:
        self.started = self.clock()

    def expired(self) -> bool:
        return self.clock() - self.started > self.timeout_seconds

    def check(self) -> None:
        if self.expired():
            raise SweepRecordTimeout(self.hold_id, self.timeout_seconds)


@dataclass(slots=True)
class _Candidate:
    hold_id: uuid.UUID
    service_id: uuid.UUID


@dataclass(slots=True)
class ResumeScheduler:
    """Resumes elapsed freezes and extends the frozen service's expiry.

    Each hold is handled in its own session and transaction. The hold is
    claimed with a conditional update before the service is touched, and both
    writes commit together, so a repeated or overlapping sweep cannot extend
    the same service twice.
    """

    hold_repository: HoldRecordRepository = HoldRecordRepository()
    service_repository: ServiceRecordRepository = ServiceRecordRepository()
    member_repository: MemberRepository = MemberRepository()
    audit_sink: AuditSink = AuditSink()
    record_timeout_seconds: float | None = None
    actor: str | None = None
    clock: Callable[[], float] = field(default=time.monotonic)

    def run_resume_sweep(self, session_factory: sessionmaker[Session], as_of: date | None = None) -> SweepReport:
        as_of = as_of or utc_today()
        sweep_id = str(uuid.uuid4())
        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()

        with bind_correlation_id(sweep_id), tracer.start_as_current_span("membership.sweep") as sweep_span:
            sweep_span.set_attribute("sweep_id", sweep_id)
            sweep_span.set_attribute("as_of", as_of.isoformat())
            logger.info("sweep.started", extra={"sweep_id": sweep_id, "as_of": as_of.isoformat()})

            try:
                candidates = self._load_candidates(session_factory, as_of)
            except StoreUnavailable as exc:
                observe_sweep("error", time.perf_counter() - started)
                sweep_span.record_exception(exc)
                sweep_span.set_status(Status(StatusCode.ERROR, str(exc)))
                logger.error(
                    "sweep.failed",
                    extra={"sweep_id": sweep_id, "as_of": as_of.isoformat(), "error_code": exc.code, "error": str(exc)},
                )
                raise

            results = [self._resume_one(session_factory, candidate, sweep_id) for candidate in candidates]

            report = SweepReport(
                sweep_id=sweep_id,
                as_of=as_of,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                total=len(results),
                succeeded=sum(1 for result in results if result.status == "resumed"),
                failed=sum(1 for result in results if result.status == "failed"),
                skipped=sum(1 for result in results if result.status == "skipped"),
                results=results,
            )
            sweep_span.set_attribute("total", report.total)
            sweep_span.set_attribute("failed", report.failed)
            observe_sweep("completed", time.perf_counter() - started)
            logger.info(
                "sweep.finished",
                extra={
                    "sweep_id": sweep_id,
                    "as_of": as_of.isoformat(),
                    "total": report.total,
                    "succeeded": report.succeeded,
                    "failed": report.failed,
                    "skipped": report.skipped,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return report

    def _load_candidates(self, session_factory: sessionmaker[Session], as_of: date) -> list[_Candidate]:
        session = session_factory()
        try:
            holds = self.hold_repository.list_due_freezes(session, as_of)
            return [_Candidate(hold_id=hold.id, service_id=hold.service_id) for hold in holds]
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"candidate query failed: {exc.__class__.__name__}") from exc
        finally:
            session.close()

    def _resume_one(self, session_factory: sessionmaker[Session], candidate: _Candidate, sweep_id: str) -> SweepRecordResult:
        settings = get_settings()
        timeout_seconds = (
            self.record_timeout_seconds
            if self.record_timeout_seconds is not None
            else settings.hold_sweep_record_timeout_seconds
        )
        actor = self.actor or settings.hold_sweep_actor
        deadline = _RecordDeadline(hold_id=candidate.hold_id, timeout_seconds=timeout_seconds, clock=self.clock)
        result = SweepRecordResult(hold_id=candidate.hold_id, service_id=candidate.service_id, status="failed")

        with tracer.start_as_current_span("membership.sweep.record") as record_span:
            record_span.set_attribute("sweep_id", sweep_id)
            record_span.set_attribute("hold_id", str(candidate.hold_id))
            session = session_factory()
            try:
                self._bound_statement_time(session, timeout_seconds)
                hold = self.hold_repository.get(session, candidate.hold_id)
                if hold is None or hold.status != HOLD_ACTIVE:
                    session.rollback()
                    result.status = "skipped"
                    return self._finish(result, sweep_id)

                service_record = self.service_repository.get(session, hold.service_id)
                if service_record is None:
                    raise ServiceNotFound(hold.service_id)
                deadline.check()

                duration_days = freeze_duration_days(hold.hold_start, hold.hold_end)
                previous_expiry = service_record.expiry_date
                new_expiry = previous_expiry + timedelta(days=duration_days)

                if not self.hold_repository.complete_if_active(session, hold.id, resumed_by=actor):
                    session.rollback()
                    result.status = "skipped"
                    return self._finish(result, sweep_id)
                self.service_repository.clear_hold(session, service_record.id, expiry_date=new_expiry)
                deadline.check()

                member = self.member_repository.get(session, hold.member_id)
                result.member_name = member.full_name if member is not None else None
                self.audit_sink.append(
                    session,
                    table_name=HOLD_TABLE,
                    record_id=str(hold.id),
                    action_type="AUTO_RESUME",
                    action_by=actor,
                    description=self._resume_description(
                        hold, member_label(member), service_record.zone, service_record.subscription_plan,
                        duration_days, previous_expiry, new_expiry,
                    ),
                    details={
                        "sweep_id": sweep_id,
                        "service_id": str(service_record.id),
                        "duration_days": duration_days,
                        "previous_expiry": previous_expiry.isoformat(),
                        "new_expiry": new_expiry.isoformat(),
                    },
                )
                deadline.check()
                session.commit()

                result.status = "resumed"
                result.duration_days = duration_days
                result.previous_expiry = previous_expiry
                result.new_expiry = new_expiry
            except MembershipHoldError as exc:
                session.rollback()
                result.error_code = exc.code
                result.error = str(exc)
            except SQLAlchemyError as exc:
                session.rollback()
                timed_out = deadline.expired()
                result.error_code = SweepRecordTimeout.code if timed_out else StoreUnavailable.code
                result.error = str(exc)[:500]
            except Exception as exc:
                session.rollback()
                logger.exception("sweep.record_crashed", extra={"sweep_id": sweep_id, "hold_id": str(candidate.hold_id)})
                result.error_code = "unexpected_error"
                result.error = str(exc)[:500]
            finally:
                session.close()

            if result.status == "failed":
                record_span.set_status(Status(StatusCode.ERROR, result.error or result.error_code or "failed"))
            return self._finish(result, sweep_id)

    @staticmethod
    def _bound_statement_time(session: Session, timeout_seconds: float) -> None:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {max(int(timeout_seconds * 1000), 1)}"))

    @staticmethod
    def _finish(result: SweepRecordResult, sweep_id: str) -> SweepRecordResult:
        observe_sweep_record(result.status, result.error_code)
        log = logger.warning if result.status == "failed" else logger.info
        log(
            "sweep.record",
            extra={
                "sweep_id": sweep_id,
                "hold_id": str(result.hold_id),
                "service_id": str(result.service_id),
                "status": result.status,
                "error_code": result.error_code,
                "error": result.error,
                "duration_days": result.duration_days,
                "previous_expiry": result.previous_expiry.isoformat() if result.previous_expiry else None,
                "new_expiry": result.new_expiry.isoformat() if result.new_expiry else None,
            },
        )
        return result

    @staticmethod
    def _resume_description(
        hold: MembershipHold,
        member: tuple[str, str],
        zone: str | None,
        plan: str | None,
        duration_days: int,
        previous_expiry: date,
        new_expiry: date,
    ) -> str:
        name, code = member
        service_label = " - ".join(part for part in (zone, plan) if part) or "Membership"
        return (
            f"Auto-resumed membership for {name} ({code}). {service_label}. "
            f"Freeze duration: {duration_days} days ({hold.hold_start.isoformat()} to {hold.hold_end.isoformat()}). "
            f"Expiry extended from {previous_expiry.isoformat()} to {new_expiry.isoformat()}."
        )


resume_scheduler = ResumeScheduler()
