"""APCD audit integrity Python SDK."""

__version__ = "0.1.0"

from apcd_audit_sdk.client import AuditIntegrityClient

__all__ = ["AuditIntegrityClient"]
