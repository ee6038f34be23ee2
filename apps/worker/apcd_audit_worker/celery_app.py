"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from apcd_audit_worker.settings import get_settings

settings = get_settings()


def parse_cron(expression: str) -> crontab:
    """Build a crontab from a 5-field cron expression."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected a 5-field cron expression, got '{expression}'")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


celery_app = Celery(
    "apcd_audit_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    beat_schedule={
        "verify-recent-audit-chain": {
            "task": "apcd_audit_worker.tasks.verify_recent_audit_chain",
            "schedule": parse_cron(settings.audit_verify_schedule_cron),
            "kwargs": {"hours_back": settings.audit_verify_schedule_hours},
        },
    },
)

# Import tasks to register them with Celery
# This must be done after celery_app is created
from apcd_audit_worker import tasks  # noqa: F401, E402
