"""
NoteForge Backend - Google Gemini Completion Provider
======================================================

What:  LLMService implementation backed by google-generativeai.
How:   generate_content_async(prompt, stream=True) is awaited to open the
       stream; each response chunk's text is yielded as it arrives.
Who:   Built by dependencies.build_services() when LLM_PROVIDER=gemini.

Model ids are Gemini names (e.g. "gemini-1.5-flash"); the model name sent by
the client is used as-is.
"""

import logging
import time
from typing import AsyncIterator

import google.generativeai as genai

from noteforge.exceptions import ProviderError
from noteforge.services.llm_base import LLMService

logger = logging.getLogger(__name__)


class GeminiService(LLMService):
    """Streams completions from Google Gemini."""

    name = "gemini"

    def __init__(self, api_key: str, default_model: str = "gemini-1.5-flash"):
        # The SDK keeps credentials in module state
        if api_key:
            genai.configure(api_key=api_key)
        self.default_model = default_model
        logger.info("GeminiService initialized with default model=%s", default_model)

    async def start_stream(self, model_name: str, prompt: str) -> AsyncIterator[str]:
        model = genai.GenerativeModel(model_name or self.default_model)
        start_time = time.time()
        try:
            response = await model.generate_content_async(prompt, stream=True)
        except Exception as e:
            logger.warning(
                "Gemini stream initiation failed after %.0fms: %s",
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise ProviderError(
                provider=self.name,
                context={"model": model_name, "error_type": type(e).__name__},
            ) from e

        logger.info(
            "Gemini stream opened for model=%s in %.0fms",
            model_name,
            (time.time() - start_time) * 1000,
        )
        return self._iter_text(response)

    @staticmethod
    async def _iter_text(response) -> AsyncIterator[str]:
        async for chunk in response:
            # chunk.text raises when a chunk carries no text part (safety stop)
            try:
                text = chunk.text
            except ValueError:
                continue
            if text:
                yield text

    async def health_check(self) -> bool:
        """Lists models; free and enough to verify key plus connectivity."""
        try:
            next(iter(genai.list_models()), None)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
