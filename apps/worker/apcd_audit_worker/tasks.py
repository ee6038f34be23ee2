"""Celery tasks for periodic audit chain verification."""

import logging
from typing import Optional

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.orm import Session

from apcd_audit.audit.exceptions import StorageUnavailable
from apcd_audit.audit.service import AuditIntegrityService
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.audit.store import SqlAlchemyLedgerStore
from apcd_audit_worker.celery_app import celery_app
from apcd_audit_worker.db import get_db
from apcd_audit_worker.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Required by the service; recent-window runs never write to it
status_cache = ChainStatusCache()


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = next(get_db())
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


@celery_app.task(base=DatabaseTask, bind=True, max_retries=3)
def verify_recent_audit_chain(self, hours_back: Optional[int] = None):
    """Verify the audit chain for the trailing window and return the JSON result."""
    if hours_back is None:
        hours_back = settings.audit_verify_schedule_hours
    log_extra = {"task": "verify_recent_audit_chain", "hours_back": hours_back}

    service = AuditIntegrityService(SqlAlchemyLedgerStore(self.db), status_cache)
    try:
        result = service.verify_recent(hours_back)
    except StorageUnavailable as e:
        logger.warning(f"Audit ledger unavailable, retrying: {e}", extra=log_extra)
        raise self.retry(exc=e, countdown=settings.audit_verify_retry_seconds)
    except SoftTimeLimitExceeded:
        logger.error(f"Audit chain verification ({hours_back}h) hit the soft time limit", extra=log_extra)
        raise

    if result.is_valid:
        logger.info(
            f"Audit chain verification ({hours_back}h) valid: {result.records_checked} records checked",
            extra=log_extra,
        )
    else:
        logger.error(
            f"Audit chain verification ({hours_back}h) found {len(result.invalid_records)} "
            f"integrity findings in {result.records_checked} records",
            extra={**log_extra, "sequences": [str(r.sequence_number) for r in result.invalid_records]},
        )

    return result.model_dump(mode="json")
