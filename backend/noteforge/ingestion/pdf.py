"""
NoteForge Backend - PDF Ingestion
==================================

Two halves of PDF handling:
    extract_pdf_text()  server side, behind POST /api/parse-pdf (pypdf)
    PdfAdapter          client side, posts the bytes to that endpoint
"""

import io
import logging
from typing import TYPE_CHECKING

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from noteforge.exceptions import ParseError
from noteforge.ingestion.base import IngestionResult, SourceKind

if TYPE_CHECKING:
    from noteforge.client import NotesApiClient

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """
    Extracts the text of every page, in page order, separated by blank lines.

    Raises:
        ParseError: Empty input, not a PDF, or pypdf could not read it.
    """
    if not pdf_bytes:
        raise ParseError(message="The PDF is empty", source_kind=SourceKind.PDF.value)
    if PDF_MAGIC not in pdf_bytes[:1024]:
        raise ParseError(message="The file is not a PDF", source_kind=SourceKind.PDF.value)

    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        logger.warning("pypdf could not read the PDF: %s", str(e))
        raise ParseError(
            message="The PDF could not be parsed",
            source_kind=SourceKind.PDF.value,
            context={"error_type": type(e).__name__},
        ) from e

    logger.info("Extracted text from %d PDF pages (%d bytes)", len(pages), len(pdf_bytes))
    return "\n\n".join(pages)


class PdfAdapter:
    """Sends the PDF to the server-side extraction endpoint."""

    kind = SourceKind.PDF

    def __init__(self, api_client: "NotesApiClient"):
        self.api_client = api_client

    async def extract(self, source: bytes) -> IngestionResult:
        text = await self.api_client.parse_pdf(source)
        return IngestionResult(kind=self.kind, text=text)
