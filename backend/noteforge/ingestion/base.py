"""Shared contract for the ingestion adapters."""

import enum
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class SourceKind(str, enum.Enum):
    PDF = "pdf"
    DOCUMENT = "document"
    YOUTUBE = "youtube"
    RAW_TEXT = "raw_text"
    WEBPAGE = "webpage"


@dataclass(frozen=True)
class IngestionResult:
    """Plain text (or HTML when `is_html`) extracted from one external source."""

    kind: SourceKind
    text: str
    is_html: bool = False


@runtime_checkable
class IngestionAdapter(Protocol):
    """Every source kind gets one adapter with this shape."""

    kind: SourceKind

    async def extract(self, source: Any) -> IngestionResult:
        """Turn the raw source (bytes, URL, id or text) into an IngestionResult."""
