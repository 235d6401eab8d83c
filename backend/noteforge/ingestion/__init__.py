"""
NoteForge Backend - Ingestion Adapters
=======================================

One adapter per external source kind, all with `async extract(source)`:

    PDF       → PdfAdapter       (server-side pypdf via POST /api/parse-pdf)
    DOCUMENT  → DocumentAdapter  (mammoth, DOCX → HTML)
    YOUTUBE   → YouTubeAdapter   (youtube-transcript-api)
    RAW_TEXT  → RawTextAdapter   (identity)
    WEBPAGE   → WebpageAdapter   (httpx + BeautifulSoup)
"""

from typing import TYPE_CHECKING, Dict, Optional

import httpx

from noteforge.ingestion.base import IngestionAdapter, IngestionResult, SourceKind
from noteforge.ingestion.document import DocumentAdapter
from noteforge.ingestion.pdf import PdfAdapter
from noteforge.ingestion.raw_text import RawTextAdapter
from noteforge.ingestion.webpage import WebpageAdapter
from noteforge.ingestion.youtube import YouTubeAdapter

if TYPE_CHECKING:
    from noteforge.client import NotesApiClient


def build_adapters(
    api_client: "NotesApiClient",
    http_client: Optional[httpx.AsyncClient] = None,
    youtube: Optional[YouTubeAdapter] = None,
) -> Dict[SourceKind, IngestionAdapter]:
    return {
        SourceKind.PDF: PdfAdapter(api_client),
        SourceKind.DOCUMENT: DocumentAdapter(),
        SourceKind.YOUTUBE: youtube or YouTubeAdapter(),
        SourceKind.RAW_TEXT: RawTextAdapter(),
        SourceKind.WEBPAGE: WebpageAdapter(http_client),
    }


__all__ = [
    "IngestionAdapter",
    "IngestionResult",
    "SourceKind",
    "build_adapters",
]
