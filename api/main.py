"""
api/main.py -- FastAPI application entry point for TenantGate.

Exposes the tenant registry, account registry and refresh-token lifecycle
over HTTP so a project's backend can sign up and log in its end users.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the tenant and account stores and starts the expired
refresh-token sweep; shutdown cancels the sweep and closes both stores.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from accounts.store import AccountStore
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.accounts import router as accounts_router
from api.routes.v1.owners import router as owners_router
from api.routes.v1.projects import router as projects_router
from core.config import get_settings
from core.errors import (
    ConfigurationError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    TenantGateError,
    UnauthorizedError,
    ValidationError,
)
from tenants.store import TenantStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tenantgate.api")

# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: int) -> None:
    """Drop expired refresh tokens of every account once per interval.

    Writes already purge the affected account's set; this catches accounts
    that never write again. A failed sweep is logged and retried next period.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.to_thread(
                app.state.account_store.purge_expired_refresh_tokens, int(time.time())
            )
        except Exception:
            logger.exception("Refresh token sweep failed")
            continue
        if removed:
            logger.info("Refresh token sweep removed %d expired tokens", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores before the first request and close them on shutdown.

    The sweep task starts last because it references app.state.account_store.
    """
    settings = get_settings()
    logger.info("TenantGate API starting up")
    app.state.tenant_store = TenantStore(settings.database_url)
    app.state.account_store = AccountStore(settings.database_url)
    logger.info("Stores initialized")
    app.state.sweep_task = None
    if settings.purge_expired_refresh_tokens:
        app.state.sweep_task = asyncio.create_task(_sweep_loop(app, settings.refresh_token_sweep_seconds))

    yield

    if app.state.sweep_task is not None:
        app.state.sweep_task.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.sweep_task
    app.state.account_store.close()
    app.state.tenant_store.close()
    logger.info("TenantGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TenantGate API",
    description="Multi-tenant authentication: project credentials, scoped accounts, rotating refresh tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- register in the order a request should meet them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(projects_router, prefix="/api/v1", tags=["Projects"])
app.include_router(accounts_router, prefix="/api/v1", tags=["Accounts"])
app.include_router(owners_router, prefix="/api/v1", tags=["Owners"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

# Checked in order; subclasses (InvalidTokenError, ExpiredTokenError) match
# through UnauthorizedError.
_STATUS_BY_ERROR: list[tuple[type[TenantGateError], int]] = [
    (ValidationError, 400),
    (UnauthorizedError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ConfigurationError, 500),
    (InfrastructureError, 503),
]


def status_for(exc: TenantGateError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


@app.exception_handler(TenantGateError)
async def tenantgate_error_handler(request: Request, exc: TenantGateError) -> JSONResponse:
    """Render an engine error with its status and stable code.

    5xx messages are replaced with a generic one; the original goes to the log.
    """
    status = status_for(exc)
    message = exc.message
    if status >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        message = "The service is temporarily unavailable." if status == 503 else "An unexpected error occurred."
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
        headers=headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
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
    """Return 422 when the request body or path fails structural validation."""
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
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
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
# Defined here rather than in a router so it is always reachable. No rate
# limit -- load balancer checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and database reachability."""
    try:
        request.app.state.tenant_store.ping()
        database = "ok"
    except InfrastructureError:
        database = "unavailable"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components={"app": "ok", "database": database})
