from typing import Any

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from app.core.config import get_settings
from app.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "membership_holds",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.business.membership.tasks"],
)
celery_app.conf.beat_schedule = {
    "membership-resume-sweep-daily": {
        "task": "membership.run_resume_sweep",
        "schedule": crontab(hour=settings.hold_sweep_schedule_hour, minute=settings.hold_sweep_schedule_minute),
    },
}


@setup_logging.connect
def _configure_worker_logging(**kwargs: Any) -> None:
    configure_logging()
