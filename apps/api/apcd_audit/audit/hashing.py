"""Hash computation contract shared by the appender and the verifier.

Canonical form of a record is a UTF-8 JSON object with sorted keys, compact
separators and no NaN/Infinity. The object holds every field except the two
hashes:

    sequence_number  decimal string
    timestamp        UTC, "YYYY-MM-DDTHH:MM:SS.ffffffZ"
    actor_id         string or null
    action, entity_type, entity_id
    payload          arbitrary JSON, keys sorted at every level

    current_hash = sha256(canonical_bytes + previous_hash.encode("ascii")).hexdigest()

The genesis record (sequence 1) chains to GENESIS_HASH.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Optional

from apcd_audit.utils.time import to_naive_utc

GENESIS_HASH = "0" * 64
HASH_ALGORITHM = "sha256"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in canonical UTC form."""
    return to_naive_utc(value).strftime(TIMESTAMP_FORMAT)


def canonical_json(data: Any) -> str:
    """Deterministic JSON encoding."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def canonical_fields(
    sequence_number: int,
    timestamp: datetime,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    payload: Any,
) -> dict[str, Any]:
    return {
        "sequence_number": str(sequence_number),
        "timestamp": format_timestamp(timestamp),
        "actor_id": actor_id,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "payload": payload,
    }


def canonicalize(record) -> bytes:
    """Canonical byte encoding of a record's hashed fields.

    Accepts anything exposing the ``AuditLogRecord`` attributes. The stored
    ``previous_hash`` and ``current_hash`` are never part of the encoding.
    """
    fields = canonical_fields(
        sequence_number=record.sequence_number,
        timestamp=record.timestamp,
        actor_id=record.actor_id,
        action=record.action,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        payload=record.payload,
    )
    return canonical_json(fields).encode("utf-8")


def chain_hash(canonical: bytes, previous_hash: str) -> str:
    """Digest of canonical bytes chained to a predecessor hash."""
    digest = hashlib.new(HASH_ALGORITHM)
    digest.update(canonical)
    digest.update(previous_hash.encode("ascii"))
    return digest.hexdigest()


def compute_record_hash(record, previous_hash: str) -> str:
    """Compute a record's chained hash from its fields and a predecessor hash."""
    return chain_hash(canonicalize(record), previous_hash)
