"""Audit-log integrity engine: hash chain contract, verifier and status cache."""

from apcd_audit.audit.exceptions import (
    AuditIntegrityError,
    InvalidRange,
    StorageUnavailable,
    VerificationCancelled,
    VerificationTimeout,
)
from apcd_audit.audit.hashing import GENESIS_HASH, canonicalize, compute_record_hash
from apcd_audit.audit.schema import (
    AuditLogRecord,
    ChainStatus,
    IntegrityReason,
    InvalidRecord,
    RecentVerificationResult,
    VerificationResult,
)

__all__ = [
    "GENESIS_HASH",
    "canonicalize",
    "compute_record_hash",
    "AuditLogRecord",
    "ChainStatus",
    "IntegrityReason",
    "InvalidRecord",
    "RecentVerificationResult",
    "VerificationResult",
    "AuditIntegrityError",
    "InvalidRange",
    "StorageUnavailable",
    "VerificationCancelled",
    "VerificationTimeout",
]
