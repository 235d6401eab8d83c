"""
NoteForge Backend - Document Content Routes
============================================

GET  /api/documents/{document_id}/content   load (creates the row on first access)
PUT  /api/documents/{document_id}/content   save (last write wins)

Both require a session. A store failure is a 503 with the standard error
envelope; the editor keeps its in-memory content and the user retries.
"""

import logging
import uuid

from fastapi import APIRouter, Depends

from noteforge.dependencies import get_content_store, require_session
from noteforge.schemas.content import ContentResponse, ContentUpdate, ErrorResponse
from noteforge.services.content_store import ContentStore, LoadedContent
from noteforge.services.session_gate import UserSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Content"])

_ERRORS = {
    401: {"description": "No valid session", "model": ErrorResponse},
    503: {"description": "Document store unavailable", "model": ErrorResponse},
}


def _to_response(loaded: LoadedContent) -> ContentResponse:
    return ContentResponse(
        file_id=loaded.file_id,
        content=loaded.content,
        version=loaded.version,
        updated_at=loaded.updated_at,
    )


@router.get(
    "/{document_id}/content",
    response_model=ContentResponse,
    responses=_ERRORS,
    summary="Load a document's content",
)
async def load_content(
    document_id: uuid.UUID,
    store: ContentStore = Depends(get_content_store),
    session: UserSession = Depends(require_session),
) -> ContentResponse:
    loaded = await store.load(document_id)
    return _to_response(loaded)


@router.put(
    "/{document_id}/content",
    response_model=ContentResponse,
    responses=_ERRORS,
    summary="Replace a document's content",
    description="Overwrites the stored HTML. No version check: the last write wins.",
)
async def save_content(
    document_id: uuid.UUID,
    body: ContentUpdate,
    store: ContentStore = Depends(get_content_store),
    session: UserSession = Depends(require_session),
) -> ContentResponse:
    saved = await store.save(document_id, body.content)
    return _to_response(saved)
