from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.metrics import observe_audit_write_failure
from app.models.audit import AuditEntry


logger = logging.getLogger("app.audit")


class AuditSink:
    """Append-only writer for state transition descriptions.

    Entries are written inside a SAVEPOINT of the caller's transaction. A
    failed write is rolled back on its own and reported as a warning, so the
    transition it describes still commits.
    """

    def append(
        self,
        session: Session,
        *,
        table_name: str,
        record_id: str | None,
        action_type: str,
        action_by: str,
        description: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry | None:
        entry = self._build_entry(
            table_name=table_name,
            record_id=record_id,
            action_type=action_type,
            action_by=action_by,
            description=description,
            details=details or {},
        )
        try:
            with session.begin_nested():
                session.add(entry)
                session.flush()
        except SQLAlchemyError as exc:
            observe_audit_write_failure(action_type)
            logger.warning(
                "audit.write_failed",
                extra={
                    "table_name": table_name,
                    "record_id": record_id,
                    "action_type": action_type,
                    "error": str(exc),
                },
            )
            return None
        return entry

    def list_entries(
        self,
        session: Session,
        *,
        table_name: str | None = None,
        record_id: str | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        query = select(AuditEntry)
        if table_name is not None:
            query = query.where(AuditEntry.table_name == table_name)
        if record_id is not None:
            query = query.where(AuditEntry.record_id == record_id)
        if action_type is not None:
            query = query.where(AuditEntry.action_type == action_type)
        query = query.order_by(AuditEntry.timestamp.desc(), AuditEntry.id).limit(limit)
        return list(session.scalars(query).all())

    def _build_entry(self, **fields: Any) -> AuditEntry:
        return AuditEntry(correlation_id=get_correlation_id(), **fields)


audit_sink = AuditSink()
