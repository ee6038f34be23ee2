"""Tests for the audit integrity HTTP routes."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from apcd_audit.audit.exceptions import StorageUnavailable, VerificationTimeout
from apcd_audit.db.session import get_db
from apcd_audit.main import app
from apcd_audit.models import AuditSequence
from apcd_audit.routes.audit_integrity import get_integrity_service

from conftest import append_records, tamper_payload


@pytest.fixture
def client(db):
    """Test client bound to the test session; runs the app lifespan."""
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _failing_service(exc: Exception) -> MagicMock:
    service = MagicMock()
    service.verify.side_effect = exc
    service.verify_recent.side_effect = exc
    service.get_status.side_effect = exc
    return service


class TestVerifyRoute:
    """GET /audit-integrity/verify"""

    def test_full_chain_valid(self, client, chain):
        """Intact chain verifies; sequence numbers are strings on the wire."""
        response = client.get("/audit-integrity/verify")

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["first_sequence"] == "1"
        assert data["last_sequence"] == "5"
        assert data["records_checked"] == 5
        assert data["invalid_records"] == []
        assert data["full_chain"] is True

    def test_tampered_record_reported(self, client, db, chain):
        """Findings carry reason and stringified sequence."""
        tamper_payload(db, 3, {"tampered": True})

        data = client.get("/audit-integrity/verify").json()

        assert data["is_valid"] is False
        assert len(data["invalid_records"]) == 1
        finding = data["invalid_records"][0]
        assert finding["sequence_number"] == "3"
        assert finding["reason"] == "HASH_MISMATCH"
        assert finding["actual_hash"] == chain[2].current_hash

    def test_sub_range(self, client, chain):
        """Explicit bounds are echoed back as resolved."""
        data = client.get(
            "/audit-integrity/verify", params={"start_sequence": "2", "end_sequence": "4"}
        ).json()
        assert data["first_sequence"] == "2"
        assert data["last_sequence"] == "4"
        assert data["full_chain"] is False

    @pytest.mark.parametrize(
        "params",
        [
            {"start_sequence": "0"},
            {"start_sequence": "4", "end_sequence": "2"},
            {"end_sequence": "6"},
        ],
    )
    def test_invalid_range_returns_400(self, client, chain, params):
        """Malformed or out-of-bounds ranges are client errors."""
        response = client.get("/audit-integrity/verify", params=params)
        assert response.status_code == 400

    def test_non_numeric_bound_returns_422(self, client, chain):
        """Unparseable bounds fail request validation."""
        response = client.get("/audit-integrity/verify", params={"start_sequence": "abc"})
        assert response.status_code == 422

    def test_storage_unavailable_returns_503(self, client):
        """Ledger outages surface as retryable 503s."""
        app.dependency_overrides[get_integrity_service] = lambda: _failing_service(
            StorageUnavailable("connection refused")
        )
        response = client.get("/audit-integrity/verify")

        assert response.status_code == 503
        assert response.headers["retry-after"] == "30"

    def test_timeout_returns_504(self, client):
        """A verification that overruns its deadline is a gateway timeout."""
        app.dependency_overrides[get_integrity_service] = lambda: _failing_service(
            VerificationTimeout("deadline exceeded")
        )
        response = client.get("/audit-integrity/verify")
        assert response.status_code == 504


class TestVerifyRecentRoute:
    """GET /audit-integrity/verify-recent"""

    def test_old_records_outside_window(self, client, chain):
        """Fixture records are months old: nothing to check."""
        data = client.get("/audit-integrity/verify-recent", params={"hours": 24}).json()

        assert data["records_checked"] == 0
        assert data["is_valid"] is True
        assert data["hours_verified"] == 24
        assert data["first_sequence"] is None

    def test_non_positive_hours_returns_400(self, client, chain):
        """Window must be positive."""
        response = client.get("/audit-integrity/verify-recent", params={"hours": 0})
        assert response.status_code == 400

    def test_huge_hours_returns_400(self, client, chain):
        """Windows beyond the representable time range are client errors."""
        response = client.get("/audit-integrity/verify-recent", params={"hours": 100000000})
        assert response.status_code == 400

    def test_recent_does_not_update_status(self, client, chain):
        """Recent-window runs leave status untouched."""
        client.get("/audit-integrity/verify-recent")
        data = client.get("/audit-integrity/status").json()
        assert data["last_verification_result"] is None


class TestStatusRoute:
    """GET /audit-integrity/status"""

    def test_status_before_and_after_verification(self, client, chain):
        """Status reflects the last full verification."""
        before = client.get("/audit-integrity/status").json()
        assert before["total_records"] == 5
        assert before["latest_sequence"] == "5"
        assert before["last_verified_at"] is None

        client.get("/audit-integrity/verify")
        after = client.get("/audit-integrity/status").json()

        assert after["last_verified_at"] is not None
        assert after["last_verification_result"]["is_valid"] is True
        assert after["last_verification_result"]["last_sequence"] == "5"

    def test_large_sequence_numbers_serialize_exactly(self, client, db):
        """Sequences beyond 2**53 survive the JSON round trip."""
        db.add(AuditSequence(id=1, last_sequence=2**53 + 10, last_hash=None))
        db.commit()
        append_records(db, 1)

        data = client.get("/audit-integrity/status").json()

        assert data["latest_sequence"] == "9007199254741003"
        assert data["total_records"] == 1

    def test_storage_unavailable_returns_503(self, client):
        """Status queries surface ledger outages."""
        app.dependency_overrides[get_integrity_service] = lambda: _failing_service(
            StorageUnavailable("connection refused")
        )
        response = client.get("/audit-integrity/status")
        assert response.status_code == 503


class TestScheduleRoute:
    """POST /audit-integrity/schedule"""

    @patch("apcd_audit.routes.audit_integrity.get_celery_app")
    def test_schedule_enqueues_task(self, mock_get_celery_app, client):
        """A queued verification returns 202 with the task id."""
        mock_celery_app = MagicMock()
        mock_celery_app.signature.return_value.apply_async.return_value.id = "task-123"
        mock_get_celery_app.return_value = mock_celery_app

        response = client.post("/audit-integrity/schedule", params={"hours": 6})

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "queued"
        assert data["task_id"] == "task-123"
        assert data["hours_back"] == 6
        mock_celery_app.signature.assert_called_once_with(
            "apcd_audit_worker.tasks.verify_recent_audit_chain",
            kwargs={"hours_back": 6},
        )

    @patch("apcd_audit.routes.audit_integrity.get_celery_app")
    def test_broker_unavailable_returns_503(self, mock_get_celery_app, client):
        """Broker errors are reported as 503."""
        mock_celery_app = MagicMock()
        mock_celery_app.signature.return_value.apply_async.side_effect = ConnectionError(
            "Broker unavailable"
        )
        mock_get_celery_app.return_value = mock_celery_app

        response = client.post("/audit-integrity/schedule")
        assert response.status_code == 503

    @patch("apcd_audit.routes.audit_integrity.get_celery_app")
    def test_non_positive_hours_returns_400(self, mock_get_celery_app, client):
        """Invalid windows are rejected before enqueueing."""
        response = client.post("/audit-integrity/schedule", params={"hours": -1})

        assert response.status_code == 400
        mock_get_celery_app.assert_not_called()


class TestCorrelationId:
    """Correlation IDs are echoed or generated."""

    def test_correlation_id_echoed(self, client, chain):
        response = client.get("/audit-integrity/status", headers={"x-correlation-id": "abc-123"})
        assert response.headers["x-correlation-id"] == "abc-123"

    def test_correlation_id_generated(self, client, chain):
        response = client.get("/audit-integrity/status")
        assert response.headers["x-correlation-id"]
