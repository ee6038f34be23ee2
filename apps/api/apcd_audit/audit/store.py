"""Ledger store: read access to the append-only audit table."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterator, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apcd_audit.audit.exceptions import StorageUnavailable
from apcd_audit.audit.schema import AuditLogRecord
from apcd_audit.models import AuditLog
from apcd_audit.utils.time import to_naive_utc

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500


class LedgerAggregate(NamedTuple):
    """Live ledger size."""

    count: int
    max_sequence: Optional[int]


class LedgerStore(ABC):
    """Read interface over the audit ledger."""

    @abstractmethod
    def scan_ordered(
        self, start_sequence: int, end_sequence: int, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> Iterator[AuditLogRecord]:
        """Yield records in ascending sequence order within [start, end]."""

    @abstractmethod
    def get_by_sequence(self, sequence_number: int) -> Optional[AuditLogRecord]:
        """Fetch a single record or None."""

    @abstractmethod
    def aggregate(self) -> LedgerAggregate:
        """Return record count and highest sequence number."""

    @abstractmethod
    def first_sequence_at_or_after(self, timestamp: datetime) -> Optional[int]:
        """Lowest sequence number whose timestamp is >= the given time."""


class SqlAlchemyLedgerStore(LedgerStore):
    """Ledger store backed by the ``audit_logs`` table."""

    def __init__(self, db: Session):
        """Initialize store with a database session."""
        self.db = db

    def _fetch_chunk(self, cursor: int, end_sequence: int, limit: int) -> list[AuditLogRecord]:
        try:
            rows = (
                self.db.query(AuditLog)
                .filter(
                    AuditLog.sequence_number >= cursor,
                    AuditLog.sequence_number <= end_sequence,
                )
                .order_by(AuditLog.sequence_number.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Ledger scan failed at sequence {cursor}: {e}")
            raise StorageUnavailable(f"Ledger read failed at sequence {cursor}") from e

        records = [AuditLogRecord.from_row(row) for row in rows]
        # Keep the identity map bounded on long scans
        for row in rows:
            self.db.expunge(row)
        return records

    def scan_ordered(
        self, start_sequence: int, end_sequence: int, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> Iterator[AuditLogRecord]:
        """Keyset-paginated ascending scan; never loads the whole range at once."""
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")

        cursor = start_sequence
        while cursor <= end_sequence:
            chunk = self._fetch_chunk(cursor, end_sequence, chunk_size)
            yield from chunk
            if len(chunk) < chunk_size:
                return
            cursor = chunk[-1].sequence_number + 1

    def get_by_sequence(self, sequence_number: int) -> Optional[AuditLogRecord]:
        """Fetch a single record by sequence number."""
        try:
            row = (
                self.db.query(AuditLog)
                .filter(AuditLog.sequence_number == sequence_number)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Ledger lookup failed for sequence {sequence_number}: {e}")
            raise StorageUnavailable(f"Ledger read failed for sequence {sequence_number}") from e

        return AuditLogRecord.from_row(row) if row else None

    def aggregate(self) -> LedgerAggregate:
        """Count and max sequence in one round trip."""
        try:
            count, max_sequence = self.db.query(
                func.count(AuditLog.sequence_number),
                func.max(AuditLog.sequence_number),
            ).one()
        except SQLAlchemyError as e:
            logger.error(f"Ledger aggregate failed: {e}")
            raise StorageUnavailable("Ledger aggregate failed") from e

        return LedgerAggregate(count=count or 0, max_sequence=max_sequence)

    def first_sequence_at_or_after(self, timestamp: datetime) -> Optional[int]:
        """Resolve a timestamp to the first sequence number at or after it."""
        try:
            return (
                self.db.query(func.min(AuditLog.sequence_number))
                .filter(AuditLog.created_at >= to_naive_utc(timestamp))
                .scalar()
            )
        except SQLAlchemyError as e:
            logger.error(f"Ledger time lookup failed: {e}")
            raise StorageUnavailable("Ledger time lookup failed") from e
