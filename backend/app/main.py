"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import advice, models
from app.config import settings
from app.core.errors import AdviceError, MalformedRequest, RateLimited
from app.core.rate_limit import rate_limit_headers
from app.middleware.rate_limiter import limiter, rate_limit_exceeded_handler
from app.middleware.request_id import RequestIDMiddleware
from app.services.gemini_client import gemini_client
from app.services.redis_client import close_redis, get_redis
from app.services.scheduler import get_scheduler, start_scheduler, stop_scheduler

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


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    # Startup
    if settings.rate_limit_backend == "redis":
        await get_redis()  # Initialize Redis connection pool
    start_scheduler()  # Start background job scheduler
    yield
    # Shutdown
    stop_scheduler()
    if settings.rate_limit_backend == "redis":
        await close_redis()

app = FastAPI(
    title="Screen Advisor API",
    description="Screenshot-based PC operation advice and goal step generation",
    version="0.1.0",
    docs_url="/docs" if settings.dev_mode else None,
    redoc_url="/redoc" if settings.dev_mode else None,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if not settings.dev_mode:
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains"
            )
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]


@app.exception_handler(AdviceError)
async def _advice_error_handler(request: Request, exc: AdviceError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimited):
        headers = rate_limit_headers(exc.remaining, exc.reset_time)

    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    error = MalformedRequest.from_errors(list(exc.errors()))
    return JSONResponse(status_code=error.status_code, content={"error": error.message})


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=True)
    detail = str(exc) if settings.dev_mode else AdviceError.default_message
    return JSONResponse(status_code=500, content={"error": detail})


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-RateLimit-Remaining", "X-RateLimit-Reset", "X-Request-ID"],
)


# ---------------------------------------------------------------------------
# Routers (all under /api/)
# ---------------------------------------------------------------------------

app.include_router(advice.router, prefix="/api", tags=["advice"])
app.include_router(models.router, prefix="/api", tags=["diagnostics"])

# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict:
    """Liveness check — verifies the API process is alive."""
    return {
        "status": "healthy",
        "services": {
            "gemini_api": "ok" if settings.gemini_api_key else "not_configured",
            "gemini_circuit": gemini_client.circuit_breaker.state.value,
            "scheduler": "running" if get_scheduler() is not None else "stopped",
        },
    }


@app.get("/health/ready")
async def readiness_check() -> JSONResponse:
    """Readiness check — verifies the rate-limit backend is reachable."""
    checks: dict[str, str] = {"rate_limit_store": settings.rate_limit_backend}

    if settings.rate_limit_backend == "redis":
        try:
            redis_client = await get_redis()
            await redis_client.ping()
            checks["redis"] = "ok"
        except Exception:
            logger.warning("Redis readiness check failed", exc_info=True)
            checks["redis"] = "unavailable"

    all_ok = checks.get("redis", "ok") == "ok"
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "degraded", "services": checks},
    )


@app.get("/api/version")
async def version() -> dict:
    """Return build / version metadata."""
    return {
        "version": app.version,
        "title": app.title,
        "api_prefix": "/api",
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {"message": "Screen Advisor API", "docs": "/docs"}
