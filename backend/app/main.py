"""Main FastAPI application."""
import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.settings import settings
from app.api.continuity import router as continuity_router
from app.infra.db import base as db_base
from app.infra.db.base import Base
# Import all models to ensure they're registered with Base
from app.infra.db.models import (  # noqa: F401
    ContextSnapshotModel,
    DeviceModel,
    DeviceNotificationModel,
    SyncCompletionModel,
    SyncQueueModel,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    engine = db_base.engine
    # Startup
    if engine is not None:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            # Database might not be ready yet; requests will answer 503 until it is
            logger.warning("Could not connect to database during startup: %s", e)
            logger.warning("Make sure PostgreSQL is running and accessible.")

    yield

    # Shutdown (CancelledError here is normal on Ctrl+C)
    try:
        if engine is not None:
            await engine.dispose()
    except asyncio.CancelledError:
        logger.info("Lifespan shutdown cancelled (e.g. Ctrl+C); cleanup attempted.")
        raise


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r".*",
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        logger.info(f"[REQUEST] {request.method} {request.url.path}")
        logger.debug(f"   Query params: {dict(request.query_params)}")
        if request.headers:
            headers = dict(request.headers)
            if 'authorization' in headers:
                headers['authorization'] = '***'
            logger.debug(f"   Headers: {headers}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"[RESPONSE] {request.method} {request.url.path} - {response.status_code} ({process_time:.3f}s)")
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed logging."""
    logger.error(f"[VALIDATION ERROR] {request.method} {request.url.path}")
    errors = exc.errors()
    logger.error(f"   Validation errors ({len(errors)}):")
    for i, error in enumerate(errors, 1):
        logger.error(f"   Error {i}: {json.dumps(error, indent=2, default=str)}")

    return JSONResponse(
        status_code=422,
        content={"detail": json.loads(json.dumps(errors, default=str))}
    )


# Domain error handlers: map domain exceptions to correct HTTP status
from app.domain.common.errors import (  # noqa: E402
    NotFoundError as DomainNotFoundError,
    ValidationError as DomainValidationError,
    UnauthorizedError as DomainUnauthorizedError,
    ConflictError as DomainConflictError,
    StoreUnavailableError as DomainStoreUnavailableError,
)


@app.exception_handler(DomainNotFoundError)
async def domain_not_found_handler(request: Request, exc: DomainNotFoundError):
    """Return 404 when a resource is not found."""
    logger.warning(f"[NOT FOUND] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc)},
    )


@app.exception_handler(DomainUnauthorizedError)
async def domain_unauthorized_handler(request: Request, exc: DomainUnauthorizedError):
    """Return 401 when no user identity was forwarded."""
    logger.warning(f"[UNAUTHORIZED] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=401,
        content={"detail": exc.message},
    )


@app.exception_handler(DomainValidationError)
async def domain_validation_handler(request: Request, exc: DomainValidationError):
    """Return 422 for domain validation errors."""
    logger.warning(f"[INVALID] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message},
    )


@app.exception_handler(DomainConflictError)
async def domain_conflict_handler(request: Request, exc: DomainConflictError):
    """Return 409 for conflict errors."""
    logger.warning(f"[CONFLICT] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=409,
        content={"detail": exc.message},
    )


@app.exception_handler(DomainStoreUnavailableError)
async def domain_store_unavailable_handler(request: Request, exc: DomainStoreUnavailableError):
    """Return 503 with Retry-After; clients retry the same call on their next tick."""
    logger.error(f"[STORE UNAVAILABLE] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=503,
        content={"detail": exc.message},
        headers={"Retry-After": str(settings.store_retry_after_seconds)},
    )


# Health check (root and under /v1 so GET /v1/health works behind a /v1 proxy prefix)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


# Readiness: config, packages, DB
@app.get("/ready")
async def readiness():
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from app.readiness import run_all_checks_async, is_ready
    checks = await run_all_checks_async()
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(
        status_code=503,
        content={"ready": False, "checks": summary},
    )


# API v1 routes
app.include_router(continuity_router, prefix=f"{settings.api_v1_prefix}/continuity", tags=["continuity"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
