"""
api/main.py -- FastAPI application entry point for the forum API.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware, as a request meets it:
  log_requests       -- access log with latency
  TrustedHost / CORS -- host allow-list from ALLOWED_HOSTS; credentialed CORS
                       for CORS_ORIGINS so the browser sends the session cookie
  SlowAPIMiddleware  -- rate limits; login and TOTP routes carry their own

Lifespan handles startup (user, forum and session stores, session purge task)
and shutdown (cancel purge task, close DB connections) symmetrically.

Every failure leaves the API in the same envelope:
    {"error": {"code": ..., "message": ..., "detail": ...}}
A denial that the second factor would lift also carries "needs2FA": true at
the top level.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.comments import router as comments_router
from api.routes.posts import router as posts_router
from api.routes.sessions import router as sessions_router
from auth.session_store import MemorySessionStore, SessionStore, SqlSessionStore
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import Settings, get_settings
from core.errors import ForumError, SecondFactorRequired
from forum.service import ForumService
from forum.store import ForumStore

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("forum.api")


def build_session_store(settings: Settings) -> SessionStore:
    """Return the session backend selected by SESSION_BACKEND."""
    if settings.session_backend == "database":
        return SqlSessionStore(
            settings.session_db_url,
            absolute_ttl=settings.session_expire_seconds,
            idle_ttl=settings.session_idle_seconds,
        )
    return MemorySessionStore(
        absolute_ttl=settings.session_expire_seconds,
        idle_ttl=settings.session_idle_seconds,
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Drop expired sessions every `interval` seconds.

    Expired sessions are already refused on lookup; this only reclaims the
    ones nobody presents again. CancelledError from task.cancel() during
    shutdown propagates out of asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.session_store.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores and services on startup; release them on shutdown.

    Startup order matters: the session manager needs both the user store and
    the session store, and the purge task references the session store.
    """
    logger.info("Forum API starting up")
    app.state.user_store = UserStore(_settings.auth_db_url)
    app.state.session_store = build_session_store(_settings)
    app.state.sessions = SessionManager(
        app.state.user_store,
        app.state.session_store,
        totp_period=_settings.totp_period,
        totp_window=_settings.totp_valid_window,
    )
    logger.info(
        "Auth initialized (session_backend=%s, users=%s)",
        _settings.session_backend,
        app.state.user_store.count_users(),
    )
    app.state.forum_store = ForumStore(_settings.forum_db_url)
    app.state.forum = ForumService(app.state.forum_store)
    logger.info("Forum store initialized")
    app.state.purge_task = asyncio.create_task(_purge_loop(app, _settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.forum_store.close()
    app.state.session_store.close()
    app.state.user_store.close()
    logger.info("Forum API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Forum API",
    description="Posts and comments with session login and TOTP second factor for admins.",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if _settings.debug else None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
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
    """One access-log line per request. Health probes go to DEBUG so they do not drown the log."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    level = logging.DEBUG if request.url.path == "/api/health" else logging.INFO
    logger.log(
        level,
        "%s %s -> %d in %.1fms (client=%s)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.client.host if request.client else "-",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(sessions_router, prefix="/api", tags=["Sessions"])
app.include_router(posts_router, prefix="/api", tags=["Posts"])
app.include_router(comments_router, prefix="/api", tags=["Comments"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler goes through _error_response() so all failures share one
# envelope and clients never pick a schema by status code.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
    **extra: object,
) -> JSONResponse:
    content = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump()
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    """Render a domain error with the status and code it carries.

    Errors from auth and guarded routes are never cached, so a proxy cannot
    replay a 401 for the next, correct attempt.
    """
    extra = {"needs2FA": True} if isinstance(exc, SecondFactorRequired) else {}
    return _error_response(exc.status_code, exc.code, exc.message, headers={"Cache-Control": "no-store"}, **extra)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with Retry-After (seconds, as reported by slowapi)."""
    client = request.client.host if request.client else "unknown"
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, client)
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error_response(
        429,
        "rate_limited",
        "Too many requests.",
        detail=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and params are plain bad requests here (400, not FastAPI's 422)."""
    problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return _error_response(400, "validation_error", "Request validation failed.", detail=problems)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown paths (404), wrong methods (405) and any other Starlette HTTP error."""
    return _error_response(
        exc.status_code,
        f"http_{exc.status_code}",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else, including a failing key derivation or an unreachable database.

    Full detail goes to the log; the client only learns that it failed. A
    hashing failure must never read as a wrong password.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "Internal server error.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Registered on the app itself, outside the routers, and never rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=VERSION)
