"""Audit integrity service: verification entry points and chain status."""

import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Optional

from apcd_audit.audit.exceptions import InvalidRange, StorageUnavailable, VerificationCancelled
from apcd_audit.audit.schema import ChainStatus, RecentVerificationResult, VerificationResult
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.audit.store import LedgerStore
from apcd_audit.audit.verifier import ChainVerifier
from apcd_audit.settings import Settings, get_settings
from apcd_audit.utils import metrics
from apcd_audit.utils.time import utcnow

logger = logging.getLogger(__name__)

CACHE_POLICY_FULL_ONLY = "full_only"
CACHE_POLICY_ANY = "any"


class AuditIntegrityService:
    """Verify the audit hash chain and report its status."""

    def __init__(
        self,
        store: LedgerStore,
        cache: ChainStatusCache,
        settings: Optional[Settings] = None,
        clock: Callable = utcnow,
    ):
        """Initialize service with a ledger store and a shared status cache."""
        self.store = store
        self.cache = cache
        self.settings = settings or get_settings()
        self.clock = clock
        self.verifier = ChainVerifier(
            store,
            chunk_size=self.settings.audit_verify_chunk_size,
            clock=clock,
        )

    def _deadline(self) -> Optional[float]:
        timeout = self.settings.audit_verify_timeout_seconds
        return time.monotonic() + timeout if timeout else None

    def _run(
        self,
        scope: str,
        start_sequence: Optional[int],
        end_sequence: Optional[int],
        cancel_event: Optional[threading.Event],
    ) -> VerificationResult:
        started = time.monotonic()
        try:
            result = self.verifier.verify_range(
                start_sequence,
                end_sequence,
                cancel_event=cancel_event,
                deadline=self._deadline(),
            )
        except VerificationCancelled:
            metrics.chain_verifications.labels(scope=scope, outcome="cancelled").inc()
            raise
        except StorageUnavailable:
            metrics.chain_verifications.labels(scope=scope, outcome="error").inc()
            raise
        finally:
            metrics.chain_verification_duration.labels(scope=scope).observe(
                time.monotonic() - started
            )

        metrics.chain_verifications.labels(
            scope=scope, outcome="valid" if result.is_valid else "invalid"
        ).inc()
        metrics.chain_records_checked.labels(scope=scope).inc(result.records_checked)
        for finding in result.invalid_records:
            metrics.chain_findings.labels(reason=finding.reason.value).inc()
        return result

    def _should_cache(self, result: VerificationResult) -> bool:
        if self.settings.audit_status_cache_policy == CACHE_POLICY_ANY:
            return True
        return result.full_chain

    def verify(
        self,
        start_sequence: Optional[int] = None,
        end_sequence: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> VerificationResult:
        """Verify a sequence range (the whole chain when no bounds are given).

        Only full-chain results update the status cache unless the cache
        policy is ``any``. Cancelled or failed runs never touch the cache.
        """
        scope = "range" if start_sequence is not None or end_sequence is not None else "full"
        result = self._run(scope, start_sequence, end_sequence, cancel_event)

        if self._should_cache(result) and self.cache.record(result):
            if result.full_chain:
                metrics.chain_invalid_records.set(len(result.invalid_records))
                metrics.chain_last_verified_timestamp.set(result.verified_at.timestamp())
        return result

    def verify_recent(
        self,
        hours_back: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecentVerificationResult:
        """Verify records written in the last ``hours_back`` hours.

        Scoped verification: the status cache is never updated.
        """
        if hours_back is None:
            hours_back = self.settings.audit_recent_default_hours
        if hours_back <= 0:
            raise InvalidRange(f"hours must be > 0 (got {hours_back})")

        now = self.clock()
        try:
            cutoff = now - timedelta(hours=hours_back)
        except OverflowError as e:
            raise InvalidRange(f"hours ({hours_back}) reaches past the earliest representable time") from e
        logger.info(f"Verifying records from the last {hours_back} hours (since {cutoff.isoformat()})")

        first_sequence = self.store.first_sequence_at_or_after(cutoff)
        if first_sequence is None:
            logger.info(f"No audit records in the last {hours_back} hours")
            return RecentVerificationResult(
                records_checked=0,
                verified_at=now,
                hours_verified=hours_back,
            )

        latest = self.store.aggregate().max_sequence
        result = self._run("recent", first_sequence, latest, cancel_event)
        # Scoped run even when the window reaches sequence 1
        return RecentVerificationResult(
            **{**dict(result), "full_chain": False},
            hours_verified=hours_back,
        )

    def get_status(self) -> ChainStatus:
        """Live ledger size plus the cached verification, stale or not."""
        aggregate = self.store.aggregate()
        cached = self.cache.snapshot()
        return ChainStatus(
            total_records=aggregate.count,
            latest_sequence=aggregate.max_sequence,
            last_verified_at=cached.verified_at,
            last_verification_result=cached.result,
        )
