"""
api/main.py -- FastAPI application entry point for the Extension Guardian backend.

Serves three kinds of caller:
  - the admin UI (human JWT: Bearer header or "token" cookie)
  - the guardian browser extension (x-extension-id + x-api-key headers)
  - anyone asking whether an extension id is whitelisted (public)

Run with:  uvicorn asgi:app --reload

Middleware, in registration order (Starlette runs the last one registered
outermost, so log_requests sees every response including CORS rejections):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- origin-prefix allow list (chrome-extension://...)
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. security_headers      -- nosniff / frame / referrer headers on every response
  5. log_requests          -- one access-log line per request

Lifespan opens the four stores on startup and disposes their engines on
shutdown.
"""

from __future__ import annotations

import logging
import time
import traceback
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

from activity.store import ActivityStore
from api.limiter import limiter
from api.models import ErrorResponse, FieldError, HealthResponse
from api.routes.activity import router as activity_router
from api.routes.auth import router as auth_router
from api.routes.config import router as config_router
from api.routes.whitelist import router as whitelist_router
from auth.dependencies import get_current_user, get_extension_id
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError
from extconfig.store import ConfigStore
from whitelist.store import ExtensionStore

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("guardian.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open every store before the first request; dispose engines on shutdown.

    All four stores share DATABASE_URL. Each creates its own tables on first
    connect, so a fresh database needs no migration step.
    """
    logger.info("Extension Guardian API starting up")
    app.state.user_store = UserStore()
    app.state.extension_store = ExtensionStore()
    app.state.activity_store = ActivityStore()
    app.state.config_store = ConfigStore()
    logger.info("Stores initialized (%s)", _settings.database_url.split("?")[0])

    yield

    app.state.config_store.close()
    app.state.activity_store.close()
    app.state.extension_store.close()
    app.state.user_store.close()
    logger.info("Extension Guardian API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Extension Guardian API",
    description="Browser extension whitelist enforcement: decisions, audit log and guardian runtime config.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the existing stack, so the last registration is the
# outermost layer. TrustedHost ends up innermost of the three.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.host_list,
)

# Chrome extension origins carry a per-install id, so origins are matched by
# prefix rather than listed exactly.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=_settings.origin_regex,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Extension-ID", "X-API-Key"],
    allow_credentials=True,
    max_age=86400,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    return response


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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(whitelist_router, prefix="/api", tags=["Whitelist"])
app.include_router(activity_router, prefix="/api", tags=["Activity"])
app.include_router(config_router, prefix="/api", tags=["Config"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same ErrorResponse envelope so the extension and
# the admin UI parse failures uniformly.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, message: str, code: str, errors: list[FieldError] | None = None) -> JSONResponse:
    body = ErrorResponse(message=message, code=code, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    errors = [FieldError(**e) for e in exc.errors] if exc.errors else None
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message, exc.code, errors)


def _auth_checks(dependant) -> list:
    """Credential and role dependencies of a route, in resolution order."""
    checks = []
    for dep in dependant.dependencies:
        found = _auth_checks(dep)
        if dep.call in (get_current_user, get_extension_id) or hasattr(dep.call, "roles"):
            found.append(dep.call)
        checks.extend(c for c in found if c not in checks)
    return checks


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message} entry per failed constraint."""
    # An unparseable body fails before dependencies run; credentials still answer first.
    dependant = getattr(request.scope.get("route"), "dependant", None)
    if dependant is not None and any(err.get("type") == "json_invalid" for err in exc.errors()):
        for check in _auth_checks(dependant):
            try:
                check(request)
            except AppError as auth_exc:
                return await app_error_handler(request, auth_exc)

    errors = []
    for err in exc.errors():
        loc = err.get("loc") or ()
        field = str(loc[-1]) if loc else "body"
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        errors.append(FieldError(field=field, message=message))
    return _envelope(400, "Validation failed", "validation_error", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and framework-raised HTTP errors."""
    if exc.status_code == 404:
        return _envelope(404, "Endpoint not found", "not_found")
    if exc.status_code == 405:
        return _envelope(405, "Method not allowed", "method_not_allowed")
    return _envelope(exc.status_code, str(exc.detail), f"http_{exc.status_code}")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, request.client.host if request.client else "unknown")
    response = _envelope(429, "Too many requests, please try again later", "rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback is logged; it reaches the response body only when DEBUG is on.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    if _settings.debug:
        content = ErrorResponse(message=str(exc) or "Server Error", code="internal_error").model_dump(exclude_none=True)
        content["trace"] = traceback.format_exception(exc)
        return JSONResponse(status_code=500, content=content)
    return _envelope(500, "Server Error", "internal_error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is reachable regardless of router
# registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/health", include_in_schema=False)
@app.get("/api/health", tags=["Health"])
def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
