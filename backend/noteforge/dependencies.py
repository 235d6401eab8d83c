"""
NoteForge Backend - Service Container and FastAPI Dependencies
===============================================================

What:  Builds every long-lived service once per process and hands them to
       route handlers.
How:   build_services(settings) returns a ServiceContainer; the lifespan in
       main.py stores it on app.state.services (tests pass a prebuilt one to
       create_app). Route handlers declare what they need with Depends().

    ServiceContainer
    ├── database        Database (engine + session factory)
    ├── content_store   ContentStore
    ├── llm             OpenRouterService | GeminiService (LLM_PROVIDER)
    ├── summarization   SummarizationService (provider + circuit breaker)
    ├── file_service    FileService (image uploads)
    ├── youtube         YouTubeAdapter (transcripts for /api/ingest/youtube)
    └── session_gate    SessionGate (JWT verification)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from noteforge.config import Settings
from noteforge.database import Database
from noteforge.exceptions import AuthenticationError
from noteforge.ingestion.youtube import YouTubeAdapter
from noteforge.services.content_store import ContentStore
from noteforge.services.file_service import FileService
from noteforge.services.llm_base import CircuitBreaker, LLMService
from noteforge.services.session_gate import SessionGate, UserSession
from noteforge.services.summarization import SummarizationService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    content_store: ContentStore
    llm: LLMService
    summarization: SummarizationService
    file_service: FileService
    session_gate: SessionGate
    youtube: YouTubeAdapter

    async def close(self) -> None:
        await self.llm.close()
        await self.database.dispose()


def build_llm_service(settings: Settings) -> LLMService:
    """Selects the completion provider named by LLM_PROVIDER."""
    if settings.llm_provider == "gemini":
        from noteforge.services.gemini_service import GeminiService
        return GeminiService(api_key=settings.gemini_api_key)

    from noteforge.services.openrouter_service import OpenRouterService
    return OpenRouterService(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
    )


def build_services(
    settings: Settings,
    llm: Optional[LLMService] = None,
) -> ServiceContainer:
    database = Database(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=settings.log_level == "DEBUG",
    )
    llm = llm or build_llm_service(settings)
    summarization = SummarizationService(
        provider=llm,
        token_budget=settings.prompt_token_budget,
        circuit_breaker=CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        ),
    )
    container = ServiceContainer(
        settings=settings,
        database=database,
        content_store=ContentStore(database.session_factory),
        llm=llm,
        summarization=summarization,
        file_service=FileService(settings.storage_root, settings.max_file_size),
        session_gate=SessionGate(
            jwt_secret=settings.auth_jwt_secret,
            audience=settings.auth_jwt_audience or None,
            algorithms=[settings.auth_jwt_algorithm],
            cookie_name=settings.session_cookie_name,
        ),
        youtube=YouTubeAdapter(),
    )
    logger.info(
        "Services built: provider=%s, token_budget=%d, autosave_delay=%dms",
        llm.name,
        settings.prompt_token_budget,
        settings.autosave_delay_ms,
    )
    return container


# ── FastAPI dependencies ──────────────────────────────────────────────────

def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_settings(services: ServiceContainer = Depends(get_services)) -> Settings:
    return services.settings


def get_database(services: ServiceContainer = Depends(get_services)) -> Database:
    return services.database


def get_content_store(services: ServiceContainer = Depends(get_services)) -> ContentStore:
    return services.content_store


def get_summarization_service(
    services: ServiceContainer = Depends(get_services),
) -> SummarizationService:
    return services.summarization


def get_file_service(services: ServiceContainer = Depends(get_services)) -> FileService:
    return services.file_service


def get_session_gate(services: ServiceContainer = Depends(get_services)) -> SessionGate:
    return services.session_gate


def get_youtube_adapter(services: ServiceContainer = Depends(get_services)) -> YouTubeAdapter:
    return services.youtube


def optional_session(
    request: Request,
    gate: SessionGate = Depends(get_session_gate),
) -> Optional[UserSession]:
    return gate.resolve_request(request.headers.get("Authorization"), request.cookies)


def require_session(
    session: Optional[UserSession] = Depends(optional_session),
) -> UserSession:
    """Guards routes that need a signed-in user; 401 otherwise."""
    if session is None:
        raise AuthenticationError()
    return session
