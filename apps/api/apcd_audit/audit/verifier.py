"""Hash chain verifier.

Walks a bounded sequence range, recomputes every record's hash and reports
all findings in one pass. A finding never stops the scan.

Each record is recomputed from the running hash; a record whose content
checks out but whose stored ``previous_hash`` differs from the running hash
is a broken link. Either way a record yields at most one finding.

After a mismatch the running hash is reseeded from the record's stored
``current_hash``, so one altered record produces exactly one finding and
its untouched successors still verify. After a gap, or when the anchor
before a sub-range is missing, the next record is checked against its own
stored ``previous_hash``.
"""

import logging
import threading
import time
from typing import Callable, Optional

from apcd_audit.audit.exceptions import InvalidRange, VerificationCancelled, VerificationTimeout
from apcd_audit.audit.hashing import GENESIS_HASH, compute_record_hash
from apcd_audit.audit.schema import IntegrityReason, InvalidRecord, VerificationResult
from apcd_audit.audit.store import DEFAULT_CHUNK_SIZE, LedgerStore
from apcd_audit.utils.time import utcnow

logger = logging.getLogger(__name__)


def validate_bounds(start_sequence: Optional[int], end_sequence: Optional[int]) -> None:
    """Reject malformed bounds before touching the ledger."""
    if start_sequence is not None and start_sequence < 1:
        raise InvalidRange(f"start_sequence must be >= 1 (got {start_sequence})")
    if end_sequence is not None and end_sequence < 1:
        raise InvalidRange(f"end_sequence must be >= 1 (got {end_sequence})")
    if (
        start_sequence is not None
        and end_sequence is not None
        and start_sequence > end_sequence
    ):
        raise InvalidRange(
            f"start_sequence ({start_sequence}) must not exceed end_sequence ({end_sequence})"
        )


class ChainVerifier:
    """Recompute and compare hashes over a sequence range."""

    def __init__(
        self,
        store: LedgerStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Callable = utcnow,
    ):
        """Initialize verifier over a ledger store."""
        self.store = store
        self.chunk_size = chunk_size
        self.clock = clock

    def verify_range(
        self,
        start_sequence: Optional[int] = None,
        end_sequence: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> VerificationResult:
        """Verify records in [start_sequence, end_sequence].

        Omitted bounds default to 1 and to the latest sequence number,
        snapshotted once here; records appended afterwards are ignored.
        ``deadline`` is a ``time.monotonic()`` value.
        """
        validate_bounds(start_sequence, end_sequence)

        latest = self.store.aggregate().max_sequence
        explicit = start_sequence is not None or end_sequence is not None

        if latest is None:
            if explicit:
                raise InvalidRange("Ledger is empty; no sequence range can be verified")
            return VerificationResult(verified_at=self.clock(), full_chain=True)

        start = start_sequence if start_sequence is not None else 1
        end = end_sequence if end_sequence is not None else latest
        if end > latest:
            raise InvalidRange(f"end_sequence ({end}) exceeds latest sequence ({latest})")
        if start > end:
            raise InvalidRange(f"start_sequence ({start}) exceeds latest sequence ({latest})")

        full_chain = start == 1 and end == latest
        logger.info(f"Starting hash chain verification over [{start}, {end}]")

        invalid_records: list[InvalidRecord] = []
        running_hash: Optional[str] = GENESIS_HASH
        if start > 1:
            anchor = self.store.get_by_sequence(start - 1)
            if anchor is not None:
                running_hash = anchor.current_hash
            else:
                running_hash = None
                invalid_records.append(
                    InvalidRecord(
                        sequence_number=start,
                        reason=IntegrityReason.UNVERIFIABLE_BOUNDARY,
                    )
                )
                logger.warning(
                    f"Anchor record {start - 1} missing; link into sequence {start} is unverifiable"
                )

        records_checked = 0
        expected_sequence = start
        for record in self.store.scan_ordered(start, end, self.chunk_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Verification over [{start}, {end}] cancelled at {record.sequence_number}")
                raise VerificationCancelled(
                    f"Verification cancelled at sequence {record.sequence_number}"
                )
            if deadline is not None and time.monotonic() > deadline:
                logger.warning(f"Verification over [{start}, {end}] timed out at {record.sequence_number}")
                raise VerificationTimeout(
                    f"Verification deadline exceeded at sequence {record.sequence_number}"
                )

            sequence = record.sequence_number
            if sequence != expected_sequence:
                invalid_records.append(
                    InvalidRecord(
                        sequence_number=expected_sequence,
                        reason=IntegrityReason.SEQUENCE_GAP,
                        missing_through=sequence - 1,
                    )
                )
                logger.warning(f"Sequence gap: records {expected_sequence}..{sequence - 1} missing")
                # Predecessor unavailable; check content against the stored link
                running_hash = None

            if running_hash is None:
                running_hash = record.previous_hash

            expected_hash = compute_record_hash(record, running_hash)
            if expected_hash != record.current_hash:
                invalid_records.append(
                    InvalidRecord(
                        sequence_number=sequence,
                        reason=IntegrityReason.HASH_MISMATCH,
                        expected_hash=expected_hash,
                        actual_hash=record.current_hash,
                    )
                )
                logger.warning(
                    f"Invalid hash at sequence {sequence}: expected {expected_hash}, "
                    f"got {record.current_hash}"
                )
            elif record.previous_hash != running_hash:
                # Content intact but the stored link was rewritten
                invalid_records.append(
                    InvalidRecord(
                        sequence_number=sequence,
                        reason=IntegrityReason.HASH_MISMATCH,
                        expected_hash=running_hash,
                        actual_hash=record.previous_hash,
                    )
                )
                logger.warning(
                    f"Chain break at sequence {sequence}: previous_hash {record.previous_hash} "
                    f"does not match predecessor {running_hash}"
                )

            running_hash = record.current_hash
            expected_sequence = sequence + 1
            records_checked += 1

        if expected_sequence <= end:
            invalid_records.append(
                InvalidRecord(
                    sequence_number=expected_sequence,
                    reason=IntegrityReason.SEQUENCE_GAP,
                    missing_through=end,
                )
            )
            logger.warning(f"Sequence gap: records {expected_sequence}..{end} missing")

        result = VerificationResult(
            first_sequence=start,
            last_sequence=end,
            records_checked=records_checked,
            invalid_records=invalid_records,
            verified_at=self.clock(),
            full_chain=full_chain,
        )
        logger.info(
            f"Hash chain verification complete: {'VALID' if result.is_valid else 'INVALID'} "
            f"({records_checked} records checked, {len(invalid_records)} findings)"
        )
        return result
