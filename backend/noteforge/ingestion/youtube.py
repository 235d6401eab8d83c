"""
NoteForge Backend - YouTube Transcript Ingestion
=================================================

Accepts a YouTube URL in any of the common shapes, or a bare 11-character
video id, and returns the video's transcript as one line of text.

Recognised forms:
    https://www.youtube.com/watch?v=<id>
    https://youtu.be/<id>
    https://www.youtube.com/embed/<id>
    https://www.youtube.com/v/<id>
    <id>
"""

import asyncio
import logging
import re
from typing import Optional

from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from noteforge.exceptions import InvalidReference, ProviderError, TranscriptUnavailable
from noteforge.ingestion.base import IngestionResult, SourceKind

logger = logging.getLogger(__name__)

_URL_ID = re.compile(r"(?:v=|/embed/|/v/|youtu\.be/|/watch\?v=)([A-Za-z0-9_-]{11})")
_BARE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(reference: str) -> str:
    """
    Raises:
        InvalidReference: No id in a recognised URL form and not a bare id.
    """
    text = (reference or "").strip()
    match = _URL_ID.search(text)
    if match:
        return match.group(1)
    if _BARE_ID.match(text):
        return text
    raise InvalidReference(reference=text)


class YouTubeAdapter:
    kind = SourceKind.YOUTUBE

    def __init__(self, transcript_api: Optional[YouTubeTranscriptApi] = None):
        self.transcript_api = transcript_api or YouTubeTranscriptApi()

    def fetch_transcript(self, video_id: str) -> str:
        """Blocking fetch; snippet texts joined with single spaces."""
        try:
            transcript = self.transcript_api.fetch(video_id)
        except CouldNotRetrieveTranscript as e:
            logger.info("No transcript for video %s: %s", video_id, type(e).__name__)
            raise TranscriptUnavailable(video_id=video_id) from e
        except Exception as e:
            logger.warning("Transcript fetch failed for video %s: %s", video_id, str(e))
            raise ProviderError(
                message="The transcript service is unavailable",
                provider="youtube",
                context={"video_id": video_id, "error_type": type(e).__name__},
            ) from e

        return " ".join(snippet.text for snippet in transcript)

    async def extract(self, source: str) -> IngestionResult:
        video_id = extract_video_id(source)
        text = await asyncio.to_thread(self.fetch_transcript, video_id)
        logger.info("Fetched transcript for video %s (%d chars)", video_id, len(text))
        return IngestionResult(kind=self.kind, text=text)
