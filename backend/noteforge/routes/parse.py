"""
NoteForge Backend - Ingestion Routes
=====================================

POST /api/parse-pdf        raw PDF body  → 200 text/plain, or 500 "Failed to parse PDF"
POST /api/parse-document   raw DOCX body → 200 {html}, or 422 error envelope
POST /api/ingest/youtube   {reference}   → 200 {video_id, text}

Bodies larger than MAX_FILE_SIZE are rejected with 400 before parsing.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from noteforge.dependencies import get_file_service, get_youtube_adapter
from noteforge.exceptions import ParseError
from noteforge.ingestion.document import convert_docx_to_html
from noteforge.ingestion.pdf import extract_pdf_text
from noteforge.ingestion.youtube import YouTubeAdapter, extract_video_id
from noteforge.schemas.content import (
    DocumentParseResponse,
    ErrorResponse,
    YouTubeIngestRequest,
    YouTubeIngestResponse,
)
from noteforge.services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Ingestion"])

PDF_PARSE_FAILED = "Failed to parse PDF"


async def _read_body(request: Request, file_service: FileService) -> bytes:
    declared = request.headers.get("content-length")
    file_service.validate_size(int(declared) if declared and declared.isdigit() else None, 0)
    body = await request.body()
    file_service.validate_size(None, len(body))
    return body


@router.post(
    "/parse-pdf",
    response_class=PlainTextResponse,
    responses={
        200: {"description": "Extracted text", "content": {"text/plain": {}}},
        400: {"description": "Body too large", "model": ErrorResponse},
        500: {"description": "Failed to parse PDF", "content": {"text/plain": {}}},
    },
    summary="Extract the text of a PDF",
)
async def parse_pdf(
    request: Request,
    file_service: FileService = Depends(get_file_service),
) -> PlainTextResponse:
    body = await _read_body(request, file_service)
    logger.info("PDF parse requested (%d bytes)", len(body))
    try:
        text = await asyncio.to_thread(extract_pdf_text, body)
    except ParseError as e:
        logger.warning("PDF parse failed: %s", e.message)
        return PlainTextResponse(PDF_PARSE_FAILED, status_code=500)
    return PlainTextResponse(text)


@router.post(
    "/parse-document",
    response_model=DocumentParseResponse,
    responses={
        400: {"description": "Body too large", "model": ErrorResponse},
        422: {"description": "Not a Word document", "model": ErrorResponse},
    },
    summary="Convert a DOCX document to HTML",
)
async def parse_document(
    request: Request,
    file_service: FileService = Depends(get_file_service),
) -> DocumentParseResponse:
    body = await _read_body(request, file_service)
    html = await asyncio.to_thread(convert_docx_to_html, body)
    return DocumentParseResponse(html=html)


@router.post(
    "/ingest/youtube",
    response_model=YouTubeIngestResponse,
    responses={
        400: {"description": "Invalid YouTube link or ID", "model": ErrorResponse},
        404: {"description": "No transcript available", "model": ErrorResponse},
        503: {"description": "Transcript service unavailable", "model": ErrorResponse},
    },
    summary="Fetch the transcript of a YouTube video",
)
async def ingest_youtube(
    body: YouTubeIngestRequest,
    youtube: YouTubeAdapter = Depends(get_youtube_adapter),
) -> YouTubeIngestResponse:
    video_id = extract_video_id(body.reference)
    text = await asyncio.to_thread(youtube.fetch_transcript, video_id)
    return YouTubeIngestResponse(video_id=video_id, text=text)
