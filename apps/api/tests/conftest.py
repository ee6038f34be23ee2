"""Pytest configuration and fixtures for audit integrity tests."""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from apcd_audit.audit.schema import AuditLogRecord
from apcd_audit.audit.service import AuditIntegrityService
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.audit.store import SqlAlchemyLedgerStore
from apcd_audit.audit.writer import AuditEntry, AuditLogWriter
from apcd_audit.db.base import Base
from apcd_audit.models import AuditLog
from apcd_audit.settings import Settings

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///:memory:"
)

# Ledger records in fixtures are written from here, one minute apart
LEDGER_START = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
# "Now" for services under test: well past every fixture record
NOW = datetime(2026, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db():
    """
    Create a test database session.

    For integration tests, use TEST_DATABASE_URL environment variable
    to point to a real PostgreSQL instance.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


class SteppingClock:
    """Clock returning successive times a fixed step apart."""

    def __init__(self, start: datetime, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + self.step
        return value


def make_entry(index: int) -> AuditEntry:
    """Entry shaped like an application-workflow audit event."""
    return AuditEntry(
        actor_id=f"officer-{index % 3}" if index % 4 else None,
        action="APPLICATION_STATUS_CHANGED",
        entity_type="Application",
        entity_id=f"APP-2026-{index:04d}",
        payload={
            "old": {"status": "SUBMITTED"},
            "new": {"status": "UNDER_REVIEW", "score": index * 1.5},
            "remarks": "Forwarded to committée",
        },
    )


def append_records(
    db: Session,
    count: int,
    start: datetime = LEDGER_START,
    step: timedelta = timedelta(minutes=1),
) -> list[AuditLogRecord]:
    """Append ``count`` records through the real writer and commit."""
    writer = AuditLogWriter(db, clock=SteppingClock(start, step))
    existing = db.query(AuditLog).count()
    records = [writer.append(make_entry(existing + i + 1)) for i in range(count)]
    db.commit()
    return records


def tamper_payload(db: Session, sequence_number: int, payload: dict) -> None:
    """Rewrite a record's payload behind the chain's back."""
    db.query(AuditLog).filter(AuditLog.sequence_number == sequence_number).update(
        {"payload": payload}, synchronize_session=False
    )
    db.commit()


def delete_record(db: Session, sequence_number: int) -> None:
    """Remove a record, leaving a sequence gap."""
    db.query(AuditLog).filter(AuditLog.sequence_number == sequence_number).delete(
        synchronize_session=False
    )
    db.commit()


@pytest.fixture
def chain(db: Session) -> list[AuditLogRecord]:
    """Five untampered records."""
    return append_records(db, 5)


@pytest.fixture
def store(db: Session) -> SqlAlchemyLedgerStore:
    """Ledger store over the test session."""
    return SqlAlchemyLedgerStore(db)


@pytest.fixture
def settings() -> Settings:
    """Settings with a small chunk size so scans span several pages."""
    return Settings(audit_verify_chunk_size=2, audit_status_cache_policy="full_only")


@pytest.fixture
def status_cache() -> ChainStatusCache:
    """Fresh, empty status cache."""
    return ChainStatusCache()


@pytest.fixture
def service(store, status_cache, settings) -> AuditIntegrityService:
    """Integrity service with a fixed clock."""
    return AuditIntegrityService(store, status_cache, settings=settings, clock=lambda: NOW)
