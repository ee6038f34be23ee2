"""Celery worker for scheduled audit chain verification."""
