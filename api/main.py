"""
api/main.py -- FastAPI application factory for QuizDesk.

Run with:      uvicorn asgi:app --reload

create_app(settings) builds a fully wired application from explicit
configuration. Nothing here reads the environment at import time; asgi.py
calls create_app(get_settings()) once, and tests pass their own Settings.

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. CORSMiddleware        -- adds CORS headers for configured browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan creates the stores and the session issuer on startup, stores them on
app.state, and disposes the database engines on shutdown.
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
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.questions import router as questions_router
from api.routes.results import router as results_router
from api.routes.users import router as users_router
from auth.store import UserStore
from auth.tokens import SessionIssuer
from core.config import Settings
from core.errors import QuizDeskError, StoreFailure
from quiz.store import QuizStore

VERSION = "0.1.0"

logger = logging.getLogger("quizdesk.api")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create application-level resources once and tear them down on exit.

        Startup order: issuer first (pure, cannot fail once Settings
        validated), then the stores (open DB connections, create tables).
        """
        logger.info("QuizDesk API starting up")
        app.state.settings = settings
        app.state.issuer = SessionIssuer(settings.secret_key, settings.token_expire_seconds)
        app.state.user_store = UserStore(settings.database_url)
        app.state.quiz_store = QuizStore(settings.database_url)
        logger.info(
            "Stores initialized (admins=%d)",
            app.state.user_store.count_by_role("admin"),
        )

        yield

        app.state.quiz_store.close()
        app.state.user_store.close()
        logger.info("QuizDesk API shutdown complete")

    return lifespan


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings) -> FastAPI:
    """Build the QuizDesk ASGI application from explicit settings."""
    _configure_logging(settings.log_level)

    app = FastAPI(
        title="QuizDesk API",
        description="Quiz management: accounts, question bank and scored results.",
        version=VERSION,
        lifespan=_build_lifespan(settings),
    )

    # Starlette wraps in reverse: the last middleware added is the outermost.
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

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

    app.include_router(auth_router, tags=["Auth"])
    app.include_router(users_router, tags=["Profile"])
    app.include_router(admin_router, tags=["Admin"])
    app.include_router(questions_router, tags=["Questions"])
    app.include_router(results_router, tags=["Results"])

    _register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Liveness plus a trivial database round-trip. No auth, no rate limit."""
        try:
            request.app.state.user_store.ping()
            database = "ok"
        except SQLAlchemyError:
            logger.exception("Health check database ping failed")
            database = "error"
        return HealthResponse(
            status="healthy" if database == "ok" else "degraded",
            version=VERSION,
            components={"app": "ok", "database": database},
        )

    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuizDeskError)
    async def quizdesk_error_handler(request: Request, exc: QuizDeskError) -> JSONResponse:
        """Translate a component-level error into its HTTP status and code."""
        if isinstance(exc, StoreFailure):
            logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.message)
            return _error_response(exc.status_code, exc.code, "A storage error occurred.")
        return _error_response(exc.status_code, exc.code, exc.message, exc.detail)

    # Must stay sync: SlowAPIMiddleware calls it without awaiting.
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error when a rate limit is exceeded."""
        retry_after = int(getattr(exc, "retry_after", 60))
        response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 400 with structured error when the body or path params fail validation."""
        return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Unknown routes and wrong methods get the same envelope as domain errors."""
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Persistence failures become a generic 500. The driver message stays in the log."""
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return _error_response(500, StoreFailure.code, "A storage error occurred.")

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        The raw exception is written to the log only, never to the response
        body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred.")
