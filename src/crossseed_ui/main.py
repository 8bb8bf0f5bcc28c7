"""
CrossSeed UI FastAPI Application.

Main application entry point with:
- FastAPI app initialization
- Middleware configuration (CORS, rate limiting, security headers)
- Router registration
- Lifespan context manager (database, background jobs)
- Exception handlers for the domain error hierarchy
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from crossseed_ui import __version__
from crossseed_ui.api import (
    auth_router,
    autobrr_router,
    config_router,
    connections_router,
    daemon_router,
    prowlarr_router,
)
from crossseed_ui.api.deps import config_store_from_settings
from crossseed_ui.config import settings
from crossseed_ui.core.exceptions import ConfigValidationError, CrossSeedUIError
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.database import close_db, database_health_check, get_session_factory, init_db
from crossseed_ui.logging_config import configure_logging
from crossseed_ui.services.daemon import DaemonMonitor
from crossseed_ui.services.prowlarr_sync import ProwlarrSyncService
from crossseed_ui.services.scheduler import JobScheduler

# Configure comprehensive logging system
configure_logging()
logger = structlog.get_logger(__name__)


def daemon_api_key() -> str | None:
    """The daemon's ``apiKey`` from its config file, if there is one."""
    try:
        store = config_store_from_settings()
    except RuntimeError:
        return None
    if not store.exists():
        return None
    return store.read_raw().get("apiKey") or None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan context manager.

    Startup initialises the database and builds the long-lived services;
    they live on ``app.state`` for the route dependencies. Shutdown stops
    the background jobs before closing the database.
    """
    # --- Startup ---
    try:
        logger.info(
            "application_starting",
            environment=settings.environment,
            log_level=settings.log_level,
            crossseed_url=settings.crossseed_url,
            config_path=settings.crossseed_config_path,
        )

        init_db()
        logger.info("database_initialized")

        app.state.sync_service = ProwlarrSyncService(get_session_factory(), config_store_from_settings)
        app.state.daemon_monitor = DaemonMonitor(settings.crossseed_url, api_key_provider=daemon_api_key)
        app.state.scheduler = None

        if settings.scheduler_enabled:
            scheduler = JobScheduler(
                app.state.sync_service,
                app.state.daemon_monitor,
                prowlarr_interval_seconds=settings.prowlarr_check_interval_seconds,
                daemon_interval_seconds=settings.daemon_probe_interval_seconds,
            )
            try:
                await scheduler.start()
                app.state.scheduler = scheduler
            except Exception as e:
                # The dashboard still works without background jobs.
                logger.error("scheduler_start_failed", error=str(e))
        else:
            logger.info("scheduler_disabled")

        logger.info("application_started")

    except Exception as e:
        logger.error("application_startup_failed", error=str(e))
        raise

    yield

    # --- Shutdown ---
    try:
        logger.info("application_shutting_down")

        if app.state.scheduler is not None:
            try:
                await app.state.scheduler.stop()
            except Exception as e:
                logger.error("scheduler_stop_failed", error=str(e))

        close_db()
        logger.info("database_connections_closed")

        logger.info("application_shutdown_complete")

    except Exception as e:
        logger.error("application_shutdown_error", error=str(e))


app = FastAPI(
    title=settings.app_name,
    description="Web dashboard for configuring and monitoring a cross-seed daemon",
    version=__version__,
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
    openapi_url="/api/openapi.json" if settings.environment != "production" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Cookie auth needs explicit origins; never combine "*" with credentials.
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    logger.info("cors_middleware_enabled", origins=settings.cors_origins)

if settings.environment == "production":
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.trusted_hosts,
    )
    logger.info("trusted_host_middleware_enabled", hosts=settings.trusted_hosts)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    try:
        response = await call_next(request)
    except Exception as exc:
        # call_next() re-raises app exceptions even after the handlers ran.
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.environment == "production" and settings.secure_cookies:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none'; object-src 'none'"
    response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=(), payment=()"
    return response


app.include_router(auth_router)
app.include_router(config_router)
app.include_router(prowlarr_router)
app.include_router(autobrr_router)
app.include_router(connections_router)
app.include_router(daemon_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness of the dashboard itself (not the daemon)."""
    try:
        db_health = database_health_check()
        return {
            "status": "healthy" if db_health.get("status") == "healthy" else "unhealthy",
            "application": "operational",
            "version": __version__,
            "database": {"status": db_health.get("status", "unknown")},
        }
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "application": "operational",
                "database": {"status": "unhealthy"},
            },
        )


def _sanitize_for_json(value: object) -> object:
    """Recursively convert non-JSON-serializable values (e.g. bytes, exceptions) to strings."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {k: _sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_json(v) for v in value]
    if isinstance(value, Exception):
        return str(value)
    return value


@app.exception_handler(CrossSeedUIError)
async def domain_error_handler(request: Request, exc: CrossSeedUIError) -> JSONResponse:
    """Map the domain hierarchy to ``{"detail": ...}`` with its status code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        detail=exc.message,
    )
    content: dict[str, object] = {"detail": exc.message}
    if isinstance(exc, ConfigValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Log validation errors at WARNING level."""
    errors = [{k: _sanitize_for_json(v) for k, v in error.items()} for error in exc.errors()]
    logger.warning(
        "http_validation_error",
        path=request.url.path,
        method=request.method,
        error_count=len(errors),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.exception_handler(HTTPException)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Log HTTP exceptions: WARNING for 4xx, ERROR for 5xx."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "http_server_error" if exc.status_code >= 500 else "http_client_error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        detail=str(exc.detail),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions, always ERROR level."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
