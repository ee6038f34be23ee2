"""Record, result and status models for the audit hash chain.

Sequence numbers are unbounded integers in Python but are always serialized
as decimal strings in JSON so that clients with 53-bit number decoders never
lose precision.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer


def _sequence_to_wire(value: Optional[int]) -> Optional[str]:
    return str(value) if value is not None else None


class IntegrityReason(str, Enum):
    """Kinds of integrity findings."""

    HASH_MISMATCH = "HASH_MISMATCH"
    SEQUENCE_GAP = "SEQUENCE_GAP"
    UNVERIFIABLE_BOUNDARY = "UNVERIFIABLE_BOUNDARY"


class AuditLogRecord(BaseModel):
    """Immutable view of one ledger row."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int
    timestamp: datetime
    actor_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    payload: Any = None
    previous_hash: str
    current_hash: str

    @classmethod
    def from_row(cls, row) -> "AuditLogRecord":
        """Build a record from an ``AuditLog`` ORM row."""
        return cls(
            sequence_number=row.sequence_number,
            timestamp=row.created_at,
            actor_id=row.actor_id,
            action=row.action,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            payload=row.payload,
            previous_hash=row.previous_hash,
            current_hash=row.current_hash,
        )


class InvalidRecord(BaseModel):
    """A single integrity finding."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int
    reason: IntegrityReason
    expected_hash: Optional[str] = None
    actual_hash: Optional[str] = None
    # Last missing sequence number of a SEQUENCE_GAP finding
    missing_through: Optional[int] = None

    @field_serializer("sequence_number", "missing_through", when_used="json")
    def _serialize_sequence(self, value: Optional[int]) -> Optional[str]:
        return _sequence_to_wire(value)


class VerificationResult(BaseModel):
    """Outcome of one verifier invocation."""

    model_config = ConfigDict(frozen=True)

    first_sequence: Optional[int] = None
    last_sequence: Optional[int] = None
    records_checked: int = 0
    invalid_records: list[InvalidRecord] = Field(default_factory=list)
    verified_at: datetime
    full_chain: bool = False

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.invalid_records

    @field_serializer("first_sequence", "last_sequence", when_used="json")
    def _serialize_sequence(self, value: Optional[int]) -> Optional[str]:
        return _sequence_to_wire(value)


class RecentVerificationResult(VerificationResult):
    """Verification of a trailing time window."""

    hours_verified: int


class ChainStatus(BaseModel):
    """Live ledger size plus the last cached full verification."""

    total_records: int
    latest_sequence: Optional[int] = None
    last_verified_at: Optional[datetime] = None
    last_verification_result: Optional[VerificationResult] = None

    @field_serializer("latest_sequence", when_used="json")
    def _serialize_sequence(self, value: Optional[int]) -> Optional[str]:
        return _sequence_to_wire(value)
