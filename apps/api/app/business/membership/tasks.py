from __future__ import annotations

from datetime import date
from typing import Any

from app.business.membership.scheduler import resume_scheduler
from app.core.celery_app import celery_app
from app.core.database import SessionLocal


@celery_app.task(name="membership.run_resume_sweep")
def run_resume_sweep_task(as_of: str | None = None) -> dict[str, Any]:
    """Beat entry point; ``as_of`` is an ISO date and defaults to today."""
    report = resume_scheduler.run_resume_sweep(SessionLocal, date.fromisoformat(as_of) if as_of else None)
    return report.model_dump(mode="json")
