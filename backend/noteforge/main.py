"""
NoteForge Backend - FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers and routers;
       the lifespan builds the service container (or keeps the one a test
       injected) and tears it down on shutdown.
Who:   uvicorn (`uvicorn noteforge.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware: RateLimit → RequestID → Logging → CORS      │
    │                                                          │
    │  Routes:                                                 │
    │    /api/documents/{id}/content   GET, PUT                │
    │    /api/parse-pdf, /api/parse-document, /api/ingest/...  │
    │    /api/ai-stream                (streamed text)         │
    │    /api/uploads                  POST, GET               │
    │    /login, /                     session gate            │
    │    /health                                               │
    │                                                          │
    │  Exception handlers: NoteForgeError → JSON envelope      │
    └──────────────────────────────────────────────────────────┘

There is no GZip middleware: it buffers bodies and would hold back the
/api/ai-stream chunks.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from noteforge import __version__
from noteforge.config import Settings
from noteforge.dependencies import ServiceContainer, build_services
from noteforge.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    FileStorageError,
    InvalidReference,
    NoteForgeError,
    NotFoundError,
    ParseError,
    ProviderError,
    RateLimitExceededError,
    StoreUnavailable,
    TranscriptUnavailable,
    ValidationError,
)
from noteforge.middleware.logging import RequestLoggingMiddleware
from noteforge.middleware.rate_limit import RateLimitMiddleware
from noteforge.middleware.request_id import RequestIDMiddleware, request_id_var
from noteforge.routes import ai_stream, content, health, parse, session, uploads

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configures the root logger once at startup.

    Format: 2024-01-01T12:00:00 [INFO] noteforge.services.content_store: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every call at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

def _make_lifespan(settings: Settings, services: Optional[ServiceContainer]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings)
        logger.info("=" * 60)
        logger.info("NoteForge Backend %s starting up...", __version__)

        try:
            settings.validate_required_for_production()
        except ValueError as e:
            # Not fatal: /health still answers and the gaps show up per request
            logger.error("Configuration error: %s", str(e))

        storage = Path(settings.storage_root)
        storage.mkdir(parents=True, exist_ok=True)
        logger.info("Storage directory: %s", storage.resolve())

        owned = services is None
        container = services if services is not None else build_services(settings)
        app.state.services = container

        logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
        logger.info("=" * 60)

        yield

        logger.info("NoteForge Backend shutting down...")
        if owned:
            await container.close()
        logger.info("Shutdown complete.")

    return lifespan


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def _envelope(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or {},
            "request_id": _request_id(request),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps the exception hierarchy onto HTTP responses.

        ValidationError          → 400 validation_error
        InvalidReference         → 400 invalid_reference
        AuthenticationError      → 401 unauthorized
        NotFoundError            → 404 not_found
        TranscriptUnavailable    → 404 transcript_unavailable
        ParseError               → 422 parse_error
        RateLimitExceededError   → 429 rate_limit_exceeded (Retry-After)
        FileStorageError         → 500 server_error
        StoreUnavailable         → 503 store_unavailable
        ProviderError            → 503 provider_error
        CircuitBreakerOpenError  → 503 service_unavailable (Retry-After)
        NoteForgeError           → 500 server_error
        Exception                → 500 internal_server_error

    Stack traces and SQL never reach the response body; they are logged.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", _request_id(request), exc.message)
        return _envelope(request, 400, "validation_error", exc.message, exc.context)

    @app.exception_handler(InvalidReference)
    async def handle_invalid_reference(request: Request, exc: InvalidReference):
        return _envelope(request, 400, "invalid_reference", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _envelope(request, 401, "unauthorized", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _envelope(request, 404, "not_found", exc.message)

    @app.exception_handler(TranscriptUnavailable)
    async def handle_transcript_unavailable(request: Request, exc: TranscriptUnavailable):
        return _envelope(request, 404, "transcript_unavailable", exc.message, exc.context)

    @app.exception_handler(ParseError)
    async def handle_parse_error(request: Request, exc: ParseError):
        logger.warning("[%s] Parse error: %s", _request_id(request), exc.message)
        return _envelope(request, 422, "parse_error", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _envelope(
            request,
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s",
            _request_id(request),
            exc.message,
            exc.context,
        )
        return _envelope(request, 500, "server_error", exc.message)

    @app.exception_handler(StoreUnavailable)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailable):
        # Context may carry driver errors: logged, never returned
        logger.error(
            "[%s] Store unavailable: %s | Context: %s",
            _request_id(request),
            exc.message,
            exc.context,
        )
        return _envelope(request, 503, "store_unavailable", exc.message)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", _request_id(request), exc.message)
        return _envelope(
            request,
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(ProviderError)
    async def handle_provider_error(request: Request, exc: ProviderError):
        logger.error(
            "[%s] Provider error: %s | Context: %s",
            _request_id(request),
            exc.message,
            exc.context,
        )
        return _envelope(request, 503, "provider_error", exc.message)

    @app.exception_handler(NoteForgeError)
    async def handle_noteforge_error(request: Request, exc: NoteForgeError):
        logger.error("[%s] Unhandled application error: %s", _request_id(request), exc.message)
        return _envelope(request, 500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            _request_id(request),
            str(exc),
            exc_info=True,
        )
        return _envelope(
            request,
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to the environment-loaded settings,
                  or the injected container's settings.
        services: Prebuilt service container. When given, the lifespan uses
                  it as-is and leaves closing it to the caller.
    """
    if settings is None:
        if services is not None:
            settings = services.settings
        else:
            from noteforge.config import settings as env_settings
            settings = env_settings

    app = FastAPI(
        title="NoteForge API",
        description=(
            "Backend of a rich-text note editor: document content storage, "
            "PDF/DOCX/YouTube ingestion and streamed AI note generation."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_make_lifespan(settings, services),
    )
    if services is not None:
        app.state.services = services

    # Middleware executes in reverse order of addition:
    # RateLimit → RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window,
    )

    register_exception_handlers(app)

    app.include_router(content.router)
    app.include_router(parse.router)
    app.include_router(ai_stream.router)
    app.include_router(uploads.router)
    app.include_router(session.router)
    app.include_router(health.router)

    return app


app = create_app()
