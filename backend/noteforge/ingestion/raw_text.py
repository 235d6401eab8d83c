"""Pasted text needs no extraction."""

from noteforge.ingestion.base import IngestionResult, SourceKind


class RawTextAdapter:
    kind = SourceKind.RAW_TEXT

    async def extract(self, source: str) -> IngestionResult:
        return IngestionResult(kind=self.kind, text=source)
