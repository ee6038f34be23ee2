"""Shared Celery client for the API to enqueue verification tasks.

Configured to match the worker's expectations (serializer, timezone, etc.).
"""

import logging
from typing import Optional

from celery import Celery

from apcd_audit.settings import get_settings

logger = logging.getLogger(__name__)

VERIFY_RECENT_TASK = "apcd_audit_worker.tasks.verify_recent_audit_chain"

_celery_app: Optional[Celery] = None


def get_celery_app() -> Celery:
    """
    Get or create singleton Celery app instance.

    Returns:
        Celery app instance configured with the Redis broker and backend
    """
    global _celery_app

    if _celery_app is None:
        settings = get_settings()

        _celery_app = Celery("apcd_audit")
        _celery_app.conf.update(
            broker_url=settings.redis_url,
            result_backend=settings.redis_url,
            task_serializer="json",
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
            task_track_started=True,
        )

        logger.info("Initialized Celery client for apcd_audit")

    return _celery_app
