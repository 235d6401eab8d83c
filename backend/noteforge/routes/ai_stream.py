"""
NoteForge Backend - Summarization Stream Route
===============================================

POST /api/ai-stream  {modelName, content, prompt?}

The provider stream is opened before the response starts, so a refused or
unreachable provider is a 503 error envelope. Once the 200 is sent the body
is the raw token text as produced, with no framing and no end marker; a
provider failure mid-stream just ends the body early.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from noteforge.dependencies import get_summarization_service
from noteforge.schemas.content import AIStreamRequest, ErrorResponse
from noteforge.services.summarization import SummarizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Summarization"])

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


@router.post(
    "/ai-stream",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Streamed notes", "content": {"text/plain": {}}},
        503: {"description": "Provider unavailable or circuit open", "model": ErrorResponse},
    },
    summary="Stream AI-generated notes for some content",
)
async def ai_stream(
    body: AIStreamRequest,
    summarization: SummarizationService = Depends(get_summarization_service),
) -> StreamingResponse:
    deltas = await summarization.open_stream(body.model_name, body.content, body.prompt)
    return StreamingResponse(
        deltas,
        media_type=STREAM_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
