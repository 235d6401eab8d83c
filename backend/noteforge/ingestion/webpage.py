"""
NoteForge Backend - Web Page Ingestion
=======================================

Fetches a page with httpx and keeps only its visible text.
"""

import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from noteforge.exceptions import ProviderError
from noteforge.ingestion.base import IngestionResult, SourceKind

logger = logging.getLogger(__name__)

INVISIBLE_TAGS = ("script", "style", "noscript", "template", "head")


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(INVISIBLE_TAGS):
        tag.decompose()
    return soup.get_text(separator="\n", strip=True)


class WebpageAdapter:
    kind = SourceKind.WEBPAGE

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        self.http_client = http_client
        self.timeout = timeout

    async def extract(self, source: str) -> IngestionResult:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(source, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(source, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Web page fetch failed for %s: %s", source, str(e))
            raise ProviderError(
                message="The web page could not be fetched",
                provider="webpage",
                context={"url": source, "error_type": type(e).__name__},
            ) from e

        text = html_to_text(response.text)
        return IngestionResult(kind=self.kind, text=text)
