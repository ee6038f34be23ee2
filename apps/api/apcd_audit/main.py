"""APCD audit integrity API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from apcd_audit import __version__
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.db.session import SessionLocal
from apcd_audit.middleware.correlation import CorrelationIDMiddleware
from apcd_audit.routes import audit_integrity
from apcd_audit.settings import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting APCD audit integrity API...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    # Empty until the first full-chain verification completes
    app.state.status_cache = ChainStatusCache()

    yield
    logger.info("Shutting down APCD audit integrity API...")


app = FastAPI(
    title="APCD Audit Integrity API",
    description="Tamper-evident audit log verification",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

app.include_router(audit_integrity.router)


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "apcd-audit",
        "version": __version__,
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (verifies the audit ledger is reachable)."""
    checks = {"database": False}

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error(f"Database check failed: {e}")
    finally:
        db.close()

    all_ready = all(checks.values())
    return JSONResponse(
        content={
            "status": "ready" if all_ready else "not_ready",
            "checks": checks,
        },
        status_code=200 if all_ready else 503,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "APCD Audit Integrity API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
