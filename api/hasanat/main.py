"""
Hasanat API - prayer and fasting points.

FastAPI application: users log prayers and fasts, earn hasanat, and their
friends hear about it.
"""

import asyncio
import contextlib
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hasanat.config import settings, validate_security_settings
from hasanat.database import AsyncSessionLocal, init_db
from hasanat.exceptions import HasanatError
from hasanat.jobs import run_sweep_forever
from hasanat.middleware.rate_limit import limiter
from hasanat.routers.fasting import router as fasting_router
from hasanat.routers.hasanat import router as hasanat_router
from hasanat.routers.jobs import router as jobs_router
from hasanat.routers.prayers import router as prayers_router
from hasanat.routers.settings import router as settings_router
from hasanat.routers.timings import router as timings_router
from hasanat.services.notifications import build_friend_notifier

# Import models to register them with Base.metadata
from hasanat import models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    validate_security_settings()
    await init_db()

    notifier = build_friend_notifier(settings, AsyncSessionLocal)
    app.state.notifier = notifier

    sweep_task = None
    if settings.sweep_enabled:
        sweep_task = asyncio.create_task(
            run_sweep_forever(settings.sweep_interval_minutes * 60, notifier=notifier)
        )

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    await notifier.drain()


app = FastAPI(
    title="Hasanat API",
    description="Prayer and fasting tracking with hasanat points",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter state
app.state.limiter = limiter

# Rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["*"],
)

# Include routers
app.include_router(prayers_router)
app.include_router(fasting_router)
app.include_router(hasanat_router)
app.include_router(timings_router)
app.include_router(settings_router)
app.include_router(jobs_router)


# --- Middleware ---


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add a unique request ID to each request."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# --- Exception Handlers ---


def _sanitize_error_detail(error: dict[str, Any]) -> dict[str, Any]:
    """Sanitize Pydantic error detail to be JSON-serializable."""
    sanitized = {}
    for key, value in error.items():
        if key == "ctx":
            # Context may hold exception instances
            sanitized[key] = {k: str(v) for k, v in value.items()} if isinstance(value, dict) else str(value)
        elif key == "loc":
            sanitized[key] = [str(loc) for loc in value]
        elif key == "input":
            # Dates, times and bytes in the raw input are not JSON types
            sanitized[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        else:
            sanitized[key] = value
    return sanitized


@app.exception_handler(HasanatError)
async def hasanat_exception_handler(request: Request, exc: HasanatError) -> JSONResponse:
    """Render domain errors with their code and status."""
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "request_id": request_id,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with consistent error format."""
    request_id = getattr(request.state, "request_id", None)

    errors = [_sanitize_error_detail(e) for e in exc.errors()]
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{field}: {msg}" if field else msg
    else:
        message = "Validation error"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": message,
                "request_id": request_id,
                "details": errors,
            }
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent error format."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled error (request_id=%s)", request_id, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            }
        },
    )


# --- Health Check ---


@app.get("/api/v1/health", tags=["System"])
async def health_check() -> dict[str, str]:
    """
    Health check endpoint.

    Returns 200 OK if the API is running.
    """
    return {"status": "healthy"}
