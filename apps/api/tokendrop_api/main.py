"""TOKENDROP API - Main FastAPI application."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from tokendrop_api.db.session import SessionLocal
from tokendrop_api.errors import DistributionError
from tokendrop_api.middleware.auth import AuthMiddleware
from tokendrop_api.middleware.correlation import CorrelationIDMiddleware, CorrelationIdFilter
from tokendrop_api.routes import admin, distribution, history
from tokendrop_api.settings import get_settings

# Configure logging
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.addFilter(CorrelationIdFilter())
logging.basicConfig(
    level=get_settings().log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
    '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}',
    handlers=[_log_handler],
)
logger = logging.getLogger(__name__)

ALEMBIC_INI_PATH = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting TOKENDROP API...")
    try:
        settings.validate_production_settings()
        logger.info(
            f"Configured {len(settings.collections)} collections, "
            f"local offset UTC{settings.local_utc_offset_hours:+d}"
        )
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    yield
    logger.info("Shutting down TOKENDROP API...")


# Create FastAPI app
app = FastAPI(
    title="TOKENDROP API",
    description="Fixed-amount token distribution with an org-scoped audit ledger",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Custom middleware (order matters - last added is first executed)
app.add_middleware(AuthMiddleware)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(admin.router)
app.include_router(history.router)
app.include_router(distribution.router)


@app.exception_handler(DistributionError)
async def distribution_error_handler(request: Request, exc: DistributionError):
    """Render taxonomy errors with their status code and error code."""
    log = logger.critical if exc.error_code == "store_write_failed" else logger.warning
    log(
        f"{exc.error_code}: {exc.message}",
        extra={"path": request.url.path, "org_id": getattr(request.state, "org_id", None)},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _migrations_at_head(db) -> bool:
    """Compare the database revision with the newest Alembic revision."""
    from alembic.config import Config
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    context = MigrationContext.configure(db.connection())
    current_rev = context.get_current_revision()
    script = ScriptDirectory.from_config(Config(ALEMBIC_INI_PATH))
    head_rev = script.get_current_head()
    if current_rev != head_rev:
        logger.warning(f"Migrations not at head: current={current_rev}, head={head_rev}")
        return False
    return True


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "tokendrop-api",
        "version": "0.1.0",
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint (database reachable, migrations applied)."""
    checks = {
        "database": False,
        "migrations": False,
    }

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
        checks["migrations"] = _migrations_at_head(db)
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
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
        "service": "TOKENDROP API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
