"""
NoteForge Backend - Word Document Ingestion
============================================

DOCX bytes are converted to HTML with mammoth. The editor accepts the HTML
as-is, so headings, lists and emphasis survive the trip.
"""

import asyncio
import io
import logging
import zipfile

import mammoth

from noteforge.exceptions import ParseError
from noteforge.ingestion.base import IngestionResult, SourceKind

logger = logging.getLogger(__name__)


def convert_docx_to_html(docx_bytes: bytes) -> str:
    """
    Raises:
        ParseError: The bytes are not a DOCX (ZIP) container or mammoth failed.
    """
    if not docx_bytes or not zipfile.is_zipfile(io.BytesIO(docx_bytes)):
        raise ParseError(
            message="The file is not a Word document",
            source_kind=SourceKind.DOCUMENT.value,
        )

    try:
        result = mammoth.convert_to_html(io.BytesIO(docx_bytes))
    except (KeyError, ValueError, zipfile.BadZipFile) as e:
        logger.warning("mammoth could not convert the document: %s", str(e))
        raise ParseError(
            message="The document could not be parsed",
            source_kind=SourceKind.DOCUMENT.value,
            context={"error_type": type(e).__name__},
        ) from e

    for message in result.messages:
        logger.debug("mammoth: %s", message)
    return result.value


class DocumentAdapter:
    kind = SourceKind.DOCUMENT

    async def extract(self, source: bytes) -> IngestionResult:
        html = await asyncio.to_thread(convert_docx_to_html, source)
        return IngestionResult(kind=self.kind, text=html, is_html=True)
