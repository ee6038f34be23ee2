"""Audit integrity routes: chain verification and status."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from apcd_audit.audit.exceptions import (
    InvalidRange,
    StorageUnavailable,
    VerificationCancelled,
    VerificationTimeout,
)
from apcd_audit.audit.schema import ChainStatus, RecentVerificationResult, VerificationResult
from apcd_audit.audit.service import AuditIntegrityService
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.audit.store import SqlAlchemyLedgerStore
from apcd_audit.celery_client import VERIFY_RECENT_TASK, get_celery_app
from apcd_audit.db.session import get_db
from apcd_audit.settings import get_settings

router = APIRouter(prefix="/audit-integrity", tags=["audit-integrity"])
logger = logging.getLogger(__name__)


class ScheduleResponse(BaseModel):
    """Scheduled verification response."""

    status: str  # queued
    task_id: str
    hours_back: int
    cron_expression: str  # periodic schedule configured on the worker


def get_status_cache(request: Request) -> ChainStatusCache:
    """Status cache owned by the running application."""
    return request.app.state.status_cache


def get_integrity_service(
    db: Session = Depends(get_db),
    cache: ChainStatusCache = Depends(get_status_cache),
) -> AuditIntegrityService:
    """Build an integrity service bound to the request's session."""
    return AuditIntegrityService(SqlAlchemyLedgerStore(db), cache)


def _raise_http_error(e: Exception):
    """Translate engine errors into HTTP errors."""
    if isinstance(e, InvalidRange):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if isinstance(e, StorageUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Audit ledger temporarily unavailable; retry later",
            headers={"Retry-After": "30"},
        ) from e
    if isinstance(e, VerificationTimeout):
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Verification did not complete within the configured deadline",
        ) from e
    raise e


# Handlers are sync so each verification runs in its own worker thread.


@router.get("/verify", response_model=VerificationResult)
def verify_hash_chain(
    start_sequence: Optional[int] = Query(None, description="Starting sequence number (inclusive)"),
    end_sequence: Optional[int] = Query(None, description="Ending sequence number (inclusive)"),
    service: AuditIntegrityService = Depends(get_integrity_service),
):
    """Run hash chain verification (whole chain when no bounds are given)."""
    logger.info(
        f"Hash chain verification requested (start={start_sequence}, end={end_sequence})"
    )
    try:
        return service.verify(start_sequence, end_sequence)
    except (InvalidRange, StorageUnavailable, VerificationCancelled) as e:
        _raise_http_error(e)


@router.get("/verify-recent", response_model=RecentVerificationResult)
def verify_recent_records(
    hours: Optional[int] = Query(None, description="Number of hours to look back (default: 24)"),
    service: AuditIntegrityService = Depends(get_integrity_service),
):
    """Verify the hash chain for records written in the last N hours."""
    try:
        return service.verify_recent(hours)
    except (InvalidRange, StorageUnavailable, VerificationCancelled) as e:
        _raise_http_error(e)


@router.get("/status", response_model=ChainStatus)
def get_chain_status(
    service: AuditIntegrityService = Depends(get_integrity_service),
):
    """Current ledger size and the last cached full verification."""
    try:
        return service.get_status()
    except StorageUnavailable as e:
        _raise_http_error(e)


@router.post(
    "/schedule",
    response_model=ScheduleResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def schedule_verification(
    hours: Optional[int] = Query(None, description="Window for the queued verification"),
):
    """Queue a recent-window verification on the worker."""
    settings = get_settings()
    hours_back = hours if hours is not None else settings.audit_verify_schedule_hours
    if hours_back <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"hours must be > 0 (got {hours_back})",
        )

    try:
        celery_app = get_celery_app()
        task = celery_app.signature(
            VERIFY_RECENT_TASK,
            kwargs={"hours_back": hours_back},
        ).apply_async()
    except Exception as e:
        logger.error(f"Failed to enqueue audit chain verification: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification queue unavailable",
            headers={"Retry-After": "30"},
        ) from e

    logger.info(f"Enqueued audit chain verification task {task.id} ({hours_back}h window)")
    return ScheduleResponse(
        status="queued",
        task_id=task.id,
        hours_back=hours_back,
        cron_expression=settings.audit_verify_schedule_cron,
    )
