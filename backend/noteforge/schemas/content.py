"""
NoteForge Backend - Pydantic Request/Response Schemas
======================================================

What:  The API contract of the content, ingestion, summarization and upload
       routes.
How:   FastAPI validates request bodies against these models and serializes
       responses through them; the OpenAPI docs are generated from them.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ══════════════════════════════════════════════════════════════════════════
# Document content
# ══════════════════════════════════════════════════════════════════════════


class ContentResponse(BaseModel):
    """Current stored HTML of one document."""
    file_id: uuid.UUID = Field(description="Document identifier")
    content: str = Field(description="Rich-text HTML markup")
    version: int = Field(description="Save counter, informational only")
    updated_at: datetime = Field(description="Time of the last write (UTC)")


class ContentUpdate(BaseModel):
    """Body of PUT /api/documents/{id}/content. Empty content is a valid save."""
    content: str = Field(description="Full replacement HTML for the document")


# ══════════════════════════════════════════════════════════════════════════
# Ingestion
# ══════════════════════════════════════════════════════════════════════════


class YouTubeIngestRequest(BaseModel):
    reference: str = Field(
        min_length=1,
        description="YouTube URL or bare 11-character video id",
    )


class YouTubeIngestResponse(BaseModel):
    video_id: str = Field(description="Extracted 11-character video id")
    text: str = Field(description="Transcript snippets joined with spaces")


class DocumentParseResponse(BaseModel):
    html: str = Field(description="DOCX body converted to HTML")


# ══════════════════════════════════════════════════════════════════════════
# Summarization
# ══════════════════════════════════════════════════════════════════════════


class AIStreamRequest(BaseModel):
    """
    Body of POST /api/ai-stream.

    Field names follow the browser client (`modelName`); snake_case names are
    accepted as well.
    """
    model_name: str = Field(alias="modelName", min_length=1)
    content: str = Field(default="")
    prompt: Optional[str] = Field(default=None)

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


# ══════════════════════════════════════════════════════════════════════════
# Uploads
# ══════════════════════════════════════════════════════════════════════════


class UploadResponse(BaseModel):
    url: str = Field(description="Path the stored image is served from")


# ══════════════════════════════════════════════════════════════════════════
# Session
# ══════════════════════════════════════════════════════════════════════════


class SessionResponse(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Error / health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error envelope for all API errors.

    Example:
        {
            "error": "store_unavailable",
            "message": "The document store is unavailable. Please try again later.",
            "details": null,
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    llm: str = Field(description="Completion provider: available, unavailable, circuit_open")
    provider: str = Field(description="Configured completion provider name")
    uptime_seconds: float = Field(description="Seconds since service started")
