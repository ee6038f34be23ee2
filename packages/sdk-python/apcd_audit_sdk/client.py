"""APCD audit integrity API client."""

from typing import Optional

import requests

SEQUENCE_FIELDS = ("first_sequence", "last_sequence", "latest_sequence")
FINDING_SEQUENCE_FIELDS = ("sequence_number", "missing_through")


def _to_int(value):
    return int(value) if value is not None else None


def parse_sequences(data: dict) -> dict:
    """Convert wire-format (string) sequence numbers back to ints."""
    parsed = dict(data)
    for field in SEQUENCE_FIELDS:
        if field in parsed:
            parsed[field] = _to_int(parsed[field])
    if "invalid_records" in parsed:
        parsed["invalid_records"] = [
            {
                **finding,
                **{f: _to_int(finding[f]) for f in FINDING_SEQUENCE_FIELDS if f in finding},
            }
            for finding in parsed["invalid_records"]
        ]
    if parsed.get("last_verification_result"):
        parsed["last_verification_result"] = parse_sequences(parsed["last_verification_result"])
    return parsed


class AuditIntegrityClient:
    """Client for the audit integrity API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 300.0,
    ):
        """Initialize client."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return parse_sequences(response.json())

    def verify(
        self,
        start_sequence: Optional[int] = None,
        end_sequence: Optional[int] = None,
    ) -> dict:
        """Verify the hash chain (whole chain when no bounds are given)."""
        params = {}
        if start_sequence is not None:
            params["start_sequence"] = str(start_sequence)
        if end_sequence is not None:
            params["end_sequence"] = str(end_sequence)
        return self._get("/audit-integrity/verify", params=params)

    def verify_recent(self, hours: Optional[int] = None) -> dict:
        """Verify records written in the last N hours."""
        params = {"hours": hours} if hours is not None else None
        return self._get("/audit-integrity/verify-recent", params=params)

    def get_status(self) -> dict:
        """Get ledger size and the last cached full verification."""
        return self._get("/audit-integrity/status")

    def schedule_verification(self, hours: Optional[int] = None) -> dict:
        """Queue a recent-window verification on the worker."""
        params = {"hours": hours} if hours is not None else None
        response = self.session.post(
            f"{self.base_url}/audit-integrity/schedule", params=params, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()
