"""
api/main.py -- FastAPI application entry point for OAuthDash.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests       -- one access-log line per request
  2. SessionMiddleware  -- signed cookie carrying the opaque session id

Lifespan builds the shared collaborators on app.state at startup and closes
them on shutdown:
  user_store     auth.store.UserStore
  session_store  auth.session.SessionStore
  provider       auth.oauth.GitHubClient
  policy         auth.policy.RevocationPolicy (wraps session_store)
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from auth.oauth import GitHubClient
from auth.policy import RevocationPolicy
from auth.session import SessionStore
from auth.store import UserStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("oauthdash.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The policy must be built from the same SessionStore the routes
    read, or revocations would clear a different store.
    """
    logger.info("OAuthDash starting up")
    if _settings.database_url:
        app.state.user_store = UserStore(db_url=_settings.database_url)
    else:
        app.state.user_store = UserStore()
    logger.info("User store initialized (%d users)", app.state.user_store.count_users())

    app.state.session_store = SessionStore(ttl=_settings.session_max_age)
    app.state.policy = RevocationPolicy(app.state.session_store)
    app.state.provider = GitHubClient(
        client_id=_settings.gh_basic_client_id,
        client_secret=_settings.gh_basic_secret_id,
        base_url=_settings.github_url,
        api_url=_settings.github_api_url,
        scope=_settings.oauth_scope,
        timeout=_settings.http_timeout,
    )
    logger.info("GitHub client initialized (api=%s)", _settings.github_api_url)

    yield

    app.state.provider.close()
    app.state.user_store.close()
    logger.info("OAuthDash shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="OAuthDash",
    description="Sign in with GitHub and view the mirrored profile.",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# The cookie holds only the random session id minted by
# auth.dependencies.get_session(); tokens stay server-side.
app.add_middleware(
    SessionMiddleware,
    secret_key=_settings.secret_key,
    session_cookie="oauthdash_session",
    max_age=_settings.session_max_age,
    same_site="lax",
    https_only=_settings.secure_cookies,
)


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
# Exception handlers
#
# All handlers return the same ErrorResponse envelope. Provider failures never
# reach these: the web routes turn them into a redirect to /error.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when query params fail validation."""
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
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
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

    The traceback goes to the log only, never to the response body.
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
# Defined here, not in web/routes.py, so it is registered before the web
# router's catch-all GET route.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    db_ok = request.app.state.user_store.ping()
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        version=__version__,
        database="ok" if db_ok else "error",
    )
