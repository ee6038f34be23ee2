"""Audit ledger models."""

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, String

from apcd_audit.db.base import Base
from apcd_audit.utils.time import to_naive_utc, utcnow


class AuditLog(Base):
    """Append-only audit ledger with hash chaining.

    Rows are never updated or deleted once written; the database rejects
    UPDATE/DELETE on this table.
    """

    __tablename__ = "audit_logs"

    sequence_number = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    actor_id = Column(String(255), nullable=True, index=True)  # NULL for system actions
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), nullable=False, index=True)
    entity_id = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=True)
    previous_hash = Column(String(64), nullable=False)
    current_hash = Column(String(64), nullable=False, unique=True)


class AuditSequence(Base):
    """Single-row sequence counter, row-locked by appenders."""

    __tablename__ = "audit_sequence"

    id = Column(Integer, primary_key=True)
    last_sequence = Column(BigInteger, nullable=False, default=0)
    last_hash = Column(String(64), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=lambda: to_naive_utc(utcnow()))
