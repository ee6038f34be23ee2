"""Audit log writer: appends hash-chained records to the ledger."""

import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apcd_audit.audit.exceptions import StorageUnavailable
from apcd_audit.audit.hashing import GENESIS_HASH, compute_record_hash
from apcd_audit.audit.schema import AuditLogRecord
from apcd_audit.models import AuditLog, AuditSequence
from apcd_audit.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

SEQUENCE_ROW_ID = 1


class AuditEntry(BaseModel):
    """An auditable action, as reported by the business layer."""

    action: str
    entity_type: str
    entity_id: str = ""
    actor_id: Optional[str] = None
    payload: Optional[Any] = None


class AuditLogWriter:
    """Append-only writer for the audit ledger.

    Sequence numbers come from the ``audit_sequence`` counter row, locked for
    the duration of the caller's transaction, so concurrent appenders are
    serialized and the chain stays linear.
    """

    def __init__(self, db: Session, clock: Callable = utcnow):
        """Initialize writer with a database session."""
        self.db = db
        self.clock = clock

    def _lock_sequence(self) -> AuditSequence:
        counter = (
            self.db.query(AuditSequence)
            .filter(AuditSequence.id == SEQUENCE_ROW_ID)
            .with_for_update()
            .first()
        )
        if counter is None:
            # Seeded by migration 001; schemas built with create_all start without it
            counter = AuditSequence(id=SEQUENCE_ROW_ID, last_sequence=0, last_hash=None)
            self.db.add(counter)
            self.db.flush()
        return counter

    def append(self, entry: AuditEntry) -> AuditLogRecord:
        """Append one entry; the caller owns the transaction (commit/rollback)."""
        try:
            counter = self._lock_sequence()
            sequence_number = counter.last_sequence + 1
            previous_hash = counter.last_hash or GENESIS_HASH

            record = AuditLogRecord(
                sequence_number=sequence_number,
                timestamp=to_naive_utc(self.clock()),
                actor_id=entry.actor_id,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                payload=entry.payload,
                previous_hash=previous_hash,
                current_hash="",
            )
            current_hash = compute_record_hash(record, previous_hash)
            row = AuditLog(
                sequence_number=sequence_number,
                created_at=record.timestamp,
                actor_id=record.actor_id,
                action=record.action,
                entity_type=record.entity_type,
                entity_id=record.entity_id,
                payload=record.payload,
                previous_hash=previous_hash,
                current_hash=current_hash,
            )

            counter.last_sequence = sequence_number
            counter.last_hash = current_hash
            counter.updated_at = row.created_at

            self.db.add(row)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to write audit log entry ({entry.action} on {entry.entity_type}): {e}")
            raise StorageUnavailable("Audit log append failed") from e

        logger.debug(f"Appended audit record {sequence_number} ({entry.action})")
        return record.model_copy(update={"current_hash": current_hash})
