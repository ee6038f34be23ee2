"""Database models - import all models here for Alembic discovery."""

from apcd_audit.models.audit import AuditLog, AuditSequence

__all__ = [
    "AuditLog",
    "AuditSequence",
]
