"""Operational errors raised by the integrity engine.

Integrity findings (hash mismatches, gaps, unverifiable boundaries) are never
raised; they are reported inside ``VerificationResult.invalid_records``.
"""


class AuditIntegrityError(Exception):
    """Base class for integrity engine failures."""


class InvalidRange(AuditIntegrityError, ValueError):
    """Caller-supplied sequence range or window is invalid."""


class StorageUnavailable(AuditIntegrityError):
    """The ledger could not be read. Safe to retry."""


class VerificationCancelled(AuditIntegrityError):
    """A verification run was cancelled before completing its range."""


class VerificationTimeout(VerificationCancelled):
    """A verification run exceeded its deadline."""
