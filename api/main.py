"""
api/main.py -- FastAPI application factory for AuthGate.

Run with:      python main.py
               uvicorn asgi:app --reload

create_app(settings) is the only place the pieces are wired together. The
Settings instance is passed in explicitly and handed down to TokenService and
AuthService; no business logic reads configuration on its own.

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter
  3. log_requests       -- one access-log line per request

Lifespan handles startup (user store, hasher, token and auth services) and
shutdown (dispose the DB engine) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import configure_auth_limit, limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.private import router as private_router
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")


def create_app(settings: Settings, user_store: UserStore | None = None) -> FastAPI:
    """Build the ASGI application for the given settings.

    Args:
        settings:   Process configuration, constructed once by the caller.
        user_store: Optional pre-built store. When given, the app uses it and
                    leaves closing it to the caller (tests seed data this way).
                    Otherwise a UserStore on settings.database_url is opened
                    at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the user store and build the auth services; dispose on shutdown."""
        logger.info("AuthGate API starting up")
        owns_store = user_store is None
        store = user_store if user_store is not None else UserStore(settings.database_url)
        tokens = TokenService(settings)
        app.state.user_store = store
        app.state.token_service = tokens
        app.state.auth_service = AuthService(
            store=store,
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            tokens=tokens,
            settings=settings,
        )
        logger.info(
            "Auth initialized (token_expire_seconds=%d, bcrypt_rounds=%d, self_assign_role=%s)",
            settings.token_expire_seconds,
            settings.bcrypt_rounds,
            settings.self_assign_role,
        )

        yield

        if owns_store:
            store.close()
        logger.info("AuthGate API shutdown complete")

    app = FastAPI(
        title="AuthGate API",
        description="User registration, password login, JWT issuance and role-gated routes.",
        version=__version__,
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Middleware stack
    # -----------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    app.add_middleware(SlowAPIMiddleware)

    # SlowAPI looks for app.state.limiter by convention. The auth limit is
    # process-wide; see api/limiter.py.
    app.state.limiter = limiter
    configure_auth_limit(settings.auth_rate_limit)

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

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(private_router, prefix="/api/v1", tags=["Private"])

    _register_exception_handlers(app)

    # Health is defined here, not in a router, so it is always reachable.
    # No rate limit: load balancer checks must not be throttled.
    @app.get("/api/v1/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Return API liveness and current version."""
        return HealthResponse(version=__version__)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_json(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
        headers=headers,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error and a Retry-After header."""
        retry_after = int(getattr(exc, "retry_after", 60))
        return _error_json(
            429,
            "rate_limited",
            "Too many requests.",
            detail=str(exc.detail),
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 when the request body fails validation.

        Only field locations and messages are echoed back, never the submitted
        input: a rejected body may contain a password.
        """
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
        )
        return _error_json(422, "validation_error", "Request validation failed.", detail=problems)

    # Registered on Starlette's base class so router-level 404/405 are caught
    # as well as the fastapi.HTTPException raised by dependencies.
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Return a structured error for all FastAPI/Starlette HTTP exceptions.

        Dependencies raise HTTPException with a dict detail carrying code and
        message. Headers (WWW-Authenticate on 401, Allow on 405) are preserved.
        """
        if isinstance(exc.detail, dict):
            return _error_json(
                exc.status_code,
                exc.detail.get("code", f"http_{exc.status_code}"),
                exc.detail.get("message", ""),
                detail=exc.detail.get("detail"),
                headers=exc.headers,
            )
        return _error_json(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The traceback goes to the log only; the client gets a generic message.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_json(500, "internal_error", "An unexpected error occurred.")
