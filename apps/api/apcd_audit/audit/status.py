"""Cached outcome of the most recent full-chain verification."""

import logging
import threading
from datetime import datetime
from typing import NamedTuple, Optional

from apcd_audit.audit.schema import VerificationResult

logger = logging.getLogger(__name__)


class CachedVerification(NamedTuple):
    """Snapshot of the cache contents."""

    verified_at: Optional[datetime]
    result: Optional[VerificationResult]


class ChainStatusCache:
    """Thread-safe holder for the last verification result.

    Empty at construction. Writes are serialized and apply last-write-wins by
    ``verified_at``: a result older than the cached one is discarded, so two
    verifications finishing out of order cannot regress the cache.
    """

    def __init__(self):
        """Initialize an empty cache."""
        self._lock = threading.Lock()
        self._result: Optional[VerificationResult] = None

    def record(self, result: VerificationResult) -> bool:
        """Store a result unless a newer one is already cached."""
        with self._lock:
            current = self._result
            if current is not None and result.verified_at < current.verified_at:
                logger.info(
                    f"Discarding verification from {result.verified_at.isoformat()}; "
                    f"cache already holds {current.verified_at.isoformat()}"
                )
                return False
            self._result = result
            return True

    def snapshot(self) -> CachedVerification:
        """Return the cached result and its timestamp, possibly stale."""
        with self._lock:
            result = self._result
        return CachedVerification(
            verified_at=result.verified_at if result else None,
            result=result,
        )
