"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from tutor.api.routes import (
    attempts,
    backup,
    cache,
    mastery,
    patterns,
    progress,
    sessions,
    users,
    words,
)
from tutor.config import settings
from tutor.core.exceptions import DecryptionError, SnapshotFormatError, SnapshotValidationError
from tutor.db.exceptions import ConstraintViolationError, DuplicateRecordError, RecordNotFoundError
from tutor.models.envelope import ApiError, ErrorCode, error_response, snapshot_errors
from tutor.services.redis_client import close_redis, get_backup_slot, get_redis
from tutor.services.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

# Configure logging format based on dev_mode
if not settings.dev_mode:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}',
    )
else:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


async def final_backup() -> None:
    """Back up everything once more before the process exits."""
    from tutor.db.database import async_session_factory
    from tutor.services.backup_service import backup_service

    if not settings.auto_backup_enabled:
        return
    try:
        slot = await get_backup_slot()
        async with async_session_factory() as session:
            await backup_service.create_backup(session, slot=slot)
        logger.info("Final backup written on shutdown")
    except Exception:
        logger.error("Final backup on shutdown failed", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Startup
    await get_redis()  # Initialize Redis connection pool
    start_scheduler()  # Start background maintenance jobs
    yield
    # Shutdown
    stop_scheduler()
    await final_backup()
    await close_redis()

app = FastAPI(
    title="Typing Tutor Progress API",
    description="Progress tracking, word mastery and backups for a typing tutor",
    version="0.1.0",
    openapi_url="/api/v1/openapi.json",
    docs_url="/docs" if settings.dev_mode else None,
    redoc_url="/redoc" if settings.dev_mode else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

def _error(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response([ApiError(code=code, message=message)]),
    )


@app.exception_handler(RecordNotFoundError)
async def _not_found_handler(_request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return _error(404, ErrorCode.NOT_FOUND, str(exc))


@app.exception_handler(SnapshotValidationError)
async def _snapshot_validation_handler(_request: Request, exc: SnapshotValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_response(snapshot_errors(exc.errors)),
    )


@app.exception_handler(SnapshotFormatError)
async def _snapshot_format_handler(_request: Request, exc: SnapshotFormatError) -> JSONResponse:
    return _error(400, ErrorCode.INVALID_FORMAT, str(exc))


@app.exception_handler(DecryptionError)
async def _decryption_handler(_request: Request, exc: DecryptionError) -> JSONResponse:
    return _error(400, ErrorCode.DECRYPTION_FAILED, str(exc))


@app.exception_handler(ConstraintViolationError)
async def _constraint_handler(_request: Request, exc: ConstraintViolationError) -> JSONResponse:
    return _error(409, ErrorCode.CONFLICT, str(exc))


@app.exception_handler(DuplicateRecordError)
async def _duplicate_handler(_request: Request, exc: DuplicateRecordError) -> JSONResponse:
    return _error(409, ErrorCode.DUPLICATE, str(exc))


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=True)
    detail = str(exc) if settings.dev_mode else "Internal server error"
    return _error(500, ErrorCode.INTERNAL_ERROR, detail)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


# ---------------------------------------------------------------------------
# Routers, all under /api/v1/
# ---------------------------------------------------------------------------

app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(words.router, prefix="/api/v1/words", tags=["custom-words"])
app.include_router(sessions.router, prefix="/api/v1/sessions", tags=["sessions"])
app.include_router(attempts.router, prefix="/api/v1/attempts", tags=["sessions"])
app.include_router(mastery.router, prefix="/api/v1/mastery", tags=["mastery"])
app.include_router(progress.router, prefix="/api/v1/progress", tags=["progress"])
app.include_router(patterns.router, prefix="/api/v1/patterns", tags=["mistake-patterns"])
app.include_router(cache.router, prefix="/api/v1/cache", tags=["maintenance"])
app.include_router(backup.router, prefix="/api/v1/backup", tags=["backup"])

# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict:
    """Liveness check: the API process is alive."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check() -> JSONResponse:
    """Readiness check: DB and Redis are reachable."""
    checks: dict[str, str] = {}

    try:
        from tutor.db.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        checks["database"] = "unavailable"

    try:
        redis_client = await get_redis()
        await redis_client.ping()
        checks["redis"] = "ok"
    except Exception:
        checks["redis"] = "unavailable"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "degraded", "services": checks},
    )


@app.get("/api/v1/version")
async def version() -> dict:
    """Return build / version metadata."""
    from tutor.models.snapshot import SNAPSHOT_VERSION

    return {
        "version": app.version,
        "title": app.title,
        "api_prefix": "/api/v1",
        "snapshot_version": SNAPSHOT_VERSION,
    }
