"""ClauseBase API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from clausebase_api.errors import (
    ClauseBaseError,
    DependencyFailure,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from clausebase_api.middleware.correlation import CorrelationIDMiddleware
from clausebase_api.middleware.user_context import UserContextMiddleware
from clausebase_api.routes import contracts, invitations, versions
from clausebase_api.settings import get_settings

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

settings = get_settings()

ERROR_STATUS = {
    ValidationError: 400,
    Forbidden: 403,
    NotFound: 404,
    InvalidState: 409,
    DependencyFailure: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting ClauseBase API...")
    try:
        settings.validate_production_settings()
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    logger.info(
        "Configured providers",
        extra={
            "content_store": settings.content_store_provider,
            "ledger_anchor": settings.ledger_anchor_provider,
            "anchor_mode": settings.anchor_mode,
        },
    )
    yield
    logger.info("Shutting down ClauseBase API...")


app = FastAPI(
    title="ClauseBase API",
    description="Collaborative contract versioning with ledger-anchored merge proofs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Order matters: last added is first executed
app.add_middleware(UserContextMiddleware)
app.add_middleware(CorrelationIDMiddleware)

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

app.include_router(contracts.router)
app.include_router(versions.router)
app.include_router(invitations.router)


@app.exception_handler(ClauseBaseError)
async def domain_error_handler(request: Request, exc: ClauseBaseError):
    """Translate domain errors into HTTP responses."""
    status_code = 500
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(
            f"Dependency failure: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "clausebase-api",
        "version": "0.1.0",
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (verifies dependencies)."""
    import redis
    from sqlalchemy import text

    from clausebase_api.db import session as db_session

    checks = {
        "database": False,
        "redis": None,  # None if not required
        "object_storage": None,
    }

    db = db_session.SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error(f"Database check failed: {e}")
    finally:
        db.close()

    if settings.anchor_mode == "async" or settings.notification_webhook_url:
        try:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
            redis_client.ping()
            checks["redis"] = True
        except Exception as e:
            logger.error(f"Redis check failed: {e}")
            checks["redis"] = False

    if settings.content_store_provider == "s3":
        try:
            from clausebase_api.storage.service import S3ContentStore

            checks["object_storage"] = S3ContentStore().is_available()
        except Exception as e:
            logger.error(f"Object storage check failed: {e}")
            checks["object_storage"] = False

    all_ready = all(value for value in checks.values() if value is not None)

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
        "service": "ClauseBase API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
