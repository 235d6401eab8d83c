"""
NoteForge Backend - Backend HTTP Client
========================================

What:  The caller side of the content, PDF extraction and summarization
       routes, used by the PDF adapter and the editing session.
How:   Wraps an httpx.AsyncClient pointed at the backend. Tests hand it a
       client over ASGITransport so requests never leave the process.
"""

import json
import logging
import uuid
from typing import AsyncIterator, Optional

import httpx

from noteforge.exceptions import ParseError, ProviderError, StoreUnavailable
from noteforge.schemas.content import ContentResponse
from noteforge.services.content_store import LoadedContent

logger = logging.getLogger(__name__)


class NotesApiClient:
    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    # ── Document content ──────────────────────────────────────────────────

    async def load(self, document_id: uuid.UUID) -> LoadedContent:
        return await self._content_request("GET", document_id)

    async def save(self, document_id: uuid.UUID, content: str) -> LoadedContent:
        return await self._content_request("PUT", document_id, {"content": content})

    async def _content_request(
        self,
        method: str,
        document_id: uuid.UUID,
        body: Optional[dict] = None,
    ) -> LoadedContent:
        try:
            response = await self.http_client.request(
                method,
                f"/api/documents/{document_id}/content",
                json=body,
            )
        except httpx.HTTPError as e:
            logger.warning("Content %s for %s failed: %s", method, document_id, str(e))
            raise StoreUnavailable(document_id=str(document_id)) from e

        if response.status_code != 200:
            raise StoreUnavailable(
                message=_error_message(response.content) or StoreUnavailable().message,
                document_id=str(document_id),
                context={"status_code": response.status_code},
            )
        data = ContentResponse.model_validate(response.json())
        return LoadedContent(
            file_id=data.file_id,
            content=data.content,
            version=data.version,
            updated_at=data.updated_at,
        )

    # ── Proxy routes ──────────────────────────────────────────────────────

    async def parse_pdf(self, pdf_bytes: bytes) -> str:
        """
        Raises:
            ParseError: Transport failure or any non-200 answer.
        """
        try:
            response = await self.http_client.post(
                "/api/parse-pdf",
                content=pdf_bytes,
                headers={"Content-Type": "application/pdf"},
            )
        except httpx.HTTPError as e:
            logger.warning("PDF extraction request failed: %s", str(e))
            raise ParseError(
                message="The PDF could not be parsed",
                source_kind="pdf",
                context={"error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            raise ParseError(
                message=response.text or "The PDF could not be parsed",
                source_kind="pdf",
                context={"status_code": response.status_code},
            )
        return response.text

    async def stream_notes(
        self,
        content: str,
        model_name: str,
        prompt: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Yields decoded text chunks of the summarization stream until it ends.

        Raises:
            ProviderError: The stream could not be started.
        """
        payload = {"modelName": model_name, "content": content, "prompt": prompt}
        try:
            async with self.http_client.stream("POST", "/api/ai-stream", json=payload) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise ProviderError(
                        message=_error_message(body) or "The AI service is temporarily unavailable",
                        context={"status_code": response.status_code},
                    )
                async for chunk in response.aiter_text():
                    if chunk:
                        yield chunk
        except httpx.HTTPError as e:
            logger.warning("Summarization stream request failed: %s", str(e))
            raise ProviderError(context={"error_type": type(e).__name__}) from e


def _error_message(body: bytes) -> Optional[str]:
    """Pulls `message` out of an error envelope, if the body is one."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("message")
    return None
