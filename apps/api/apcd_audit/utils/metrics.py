"""Prometheus metrics."""

from prometheus_client import Counter, Gauge, Histogram

# Verification runs
chain_verifications = Counter(
    "apcd_audit_chain_verifications_total",
    "Total audit chain verification runs",
    ["scope", "outcome"],  # scope: full, range, recent; outcome: valid, invalid, cancelled, error
)

chain_verification_duration = Histogram(
    "apcd_audit_chain_verification_duration_seconds",
    "Audit chain verification duration",
    ["scope"],
)

chain_records_checked = Counter(
    "apcd_audit_chain_records_checked_total",
    "Audit records recomputed by the verifier",
    ["scope"],
)

chain_findings = Counter(
    "apcd_audit_chain_findings_total",
    "Integrity findings reported by the verifier",
    ["reason"],
)

# Last cached full verification
chain_invalid_records = Gauge(
    "apcd_audit_chain_invalid_records",
    "Findings in the most recent cached full-chain verification",
)

chain_last_verified_timestamp = Gauge(
    "apcd_audit_chain_last_verified_timestamp_seconds",
    "Unix time of the most recent cached full-chain verification",
)
