"""
api/main.py -- FastAPI application entry point for Stockroom Auth.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost; Starlette wraps the most recently
registered middleware around the earlier ones):
  1. log_requests       -- one access log line per request
  2. security_headers   -- nosniff / frame / referrer / HSTS
  3. SlowAPIMiddleware  -- per-IP default limit from api.limiter
  4. CORSMiddleware     -- origins depend on APP_ENV

Lifespan opens the user store, fails fast if it is unreachable, and builds
the AuthService that routes reach through app.state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse, RootResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError, MissingCredentials
from auth.service import AuthService
from auth.store import StoreError, UserStore
from core.config import get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("stockroom.api")

settings = get_settings()

AUTH_PREFIX = "/api/auth"
LOGIN_PATH = f"{AUTH_PREFIX}/login"


class StoreUnavailableError(RuntimeError):
    """Raised at startup when the credential store cannot be reached."""


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store and build the AuthService.

    A store that cannot be opened or does not answer a ping is fatal: the
    exception propagates out of startup and uvicorn exits instead of serving
    requests with no data layer.
    """
    logger.info("Stockroom Auth starting up (env=%s)", settings.app_env)
    try:
        user_store = UserStore(settings.database_url)
    except StoreError as exc:
        logger.critical("User store connection error: %s", exc)
        raise StoreUnavailableError(str(exc)) from exc
    if not user_store.ping():
        user_store.close()
        logger.critical("User store did not answer at startup")
        raise StoreUnavailableError("User store did not answer at startup")
    logger.info("Connected to user store")

    app.state.user_store = user_store
    app.state.auth_service = AuthService(user_store, settings)

    yield

    app.state.user_store.close()
    logger.info("Stockroom Auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Stockroom Auth API",
    description="Login, token verification and first-run setup for the jewellery stock manager.",
    version="1.0.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


def _apply_security_headers(response: Response) -> Response:
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Attach baseline security headers to every response.

    Unhandled exceptions are rendered outside this middleware, so
    generic_exception_handler applies the same headers itself.
    """
    response = await call_next(request)
    return _apply_security_headers(response)


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

app.include_router(auth_router, prefix=AUTH_PREFIX, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the ErrorResponse envelope ({message, code}) so the
# front end can show `message` without inspecting the status code.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, path: str | None = None) -> JSONResponse:
    body = ErrorResponse(message=message, code=code, path=path).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError with its own status code and message."""
    response = _error(exc.status_code, exc.code, exc.message)
    response.headers["Cache-Control"] = "no-store"
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when the per-IP limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests, please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the request body cannot be parsed into the expected shape.

    Login only answers 400, 401 or 500, so a login body with wrongly typed
    fields is reported the same way as missing credentials.
    """
    logger.info("Validation error on %s: %s", request.url.path, exc.errors())
    if request.url.path == LOGIN_PATH:
        return await auth_error_handler(request, MissingCredentials())
    return _error(422, "validation_error", "Request validation failed.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for framework-raised HTTP errors, including unknown routes."""
    if exc.status_code == 404:
        return _error(404, "not_found", "Route not found", path=request.url.path)
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only, never to the response body. In
    development the exception text is included to speed up debugging.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    logger.info(
        "%s %s 500 %s",
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
    )
    message = f"Something went wrong! {exc}" if settings.debug else "Something went wrong!"
    return _apply_security_headers(_error(500, "internal_error", message))


# ---------------------------------------------------------------------------
# Root and health
#
# No auth on either. Health reports store reachability so load balancers can
# take an instance out of rotation.
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"])
async def root() -> RootResponse:
    """Liveness banner."""
    return RootResponse(timestamp=datetime.now(timezone.utc))


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return service status and store connectivity."""
    store: UserStore = request.app.state.user_store
    database = "connected" if store.ping() else "disconnected"
    return HealthResponse(database=database, timestamp=datetime.now(timezone.utc))
