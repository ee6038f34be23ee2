"""APCD audit-log integrity service."""

__version__ = "0.1.0"
