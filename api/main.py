"""
api/main.py -- FastAPI application entry point for the chapter portal.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the editor front end
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, first-run admin, session sweep) and
shutdown (close stores) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.chapters import router as chapters_router
from auth.service import AuthService, provision_user
from auth.sessions import SessionManager
from auth.store import AuthStore, MemoryAuthStore, SqlAuthStore
from chapters.store import ChapterStore
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("chapterportal.api")


# ---------------------------------------------------------------------------
# Store construction
# ---------------------------------------------------------------------------


def build_auth_store(settings: Settings) -> AuthStore:
    if settings.auth_backend == "memory":
        return MemoryAuthStore()
    return SqlAuthStore(settings.auth_db_url) if settings.auth_db_url else SqlAuthStore()


def build_chapter_store(settings: Settings) -> ChapterStore:
    return ChapterStore(settings.chapters_db_url) if settings.chapters_db_url else ChapterStore()


def bootstrap_admin(store: AuthStore, settings: Settings) -> bool:
    """Seed the first admin from BOOTSTRAP_ADMIN_* when the user table is empty.

    Returns True if a user was created. A populated table is never touched,
    so changing the env vars later has no effect.
    """
    if not settings.bootstrap_admin_username or store.has_users():
        return False
    provision_user(
        store,
        settings.bootstrap_admin_username,
        settings.bootstrap_admin_password,
        role="admin",
        email=settings.bootstrap_admin_email,
    )
    return True


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores and the auth service before the first request; close them on shutdown.

    Startup order matters:
      1. Auth store first -- the bootstrap step and the service need it.
      2. Bootstrap admin -- only on an empty user table.
      3. Sweep once so sessions that expired while the server was down do not
         linger until the next login.
    """
    settings = get_settings()
    logger.info("Chapter portal API starting up (auth_backend=%s)", settings.auth_backend)
    app.state.user_store = build_auth_store(settings)
    if bootstrap_admin(app.state.user_store, settings):
        logger.info("Bootstrap admin %r created", settings.bootstrap_admin_username)
    sessions = SessionManager(app.state.user_store, ttl=timedelta(hours=settings.session_ttl_hours))
    app.state.auth_service = AuthService(app.state.user_store, sessions)
    sessions.cleanup_expired()
    app.state.chapters = build_chapter_store(settings)
    logger.info("Stores initialized")

    yield

    app.state.chapters.close()
    app.state.user_store.close()
    logger.info("Chapter portal API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Chapter Portal API",
    description="Session login for chapter accounts and chapter content editing.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization", "X-Session-Token"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(chapters_router, prefix="/api/v1", tags=["Chapters"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Everything outside the auth envelope returns the same ErrorResponse shape.
# The auth route builds its own envelope and never reaches these, except
# for rate limiting, which fires before the handler runs.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After hint."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for HTTP exceptions.

    Routes raise HTTPException with a {code, message} dict as detail; use it
    as the error field directly rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The exception goes to the log, not the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined here, not in a router, and not rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a per-store reachability check."""
    components = {"app": "ok"}
    for name, store in (("database", request.app.state.user_store), ("chapters", request.app.state.chapters)):
        try:
            store.ping()
            components[name] = "ok"
        except Exception:
            logger.exception("Health check failed for %s", name)
            components[name] = "error"
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
