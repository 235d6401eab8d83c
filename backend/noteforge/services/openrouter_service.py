"""
NoteForge Backend - OpenRouter Completion Provider
===================================================

What:  LLMService implementation for OpenRouter's OpenAI-compatible API.
How:   AsyncOpenAI client with base_url pointed at OpenRouter; chat completion
       created with stream=True, each choice delta's content yielded.
Who:   Default provider (LLM_PROVIDER=openrouter). Model ids look like
       "deepseek/deepseek-r1:free" and are passed through untouched.
"""

import logging
import time
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI, OpenAIError

from noteforge.exceptions import ProviderError
from noteforge.services.llm_base import LLMService

logger = logging.getLogger(__name__)


class OpenRouterService(LLMService):
    """Streams chat completions from OpenRouter."""

    name = "openrouter"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        client: Optional[AsyncOpenAI] = None,
    ):
        # The SDK refuses to construct without a key; the placeholder keeps
        # startup working and the provider answers 401 on first use.
        self.client = client or AsyncOpenAI(
            api_key=api_key or "missing-openrouter-key",
            base_url=base_url,
        )
        self.base_url = base_url
        logger.info("OpenRouterService initialized with base_url=%s", base_url)

    async def start_stream(self, model_name: str, prompt: str) -> AsyncIterator[str]:
        start_time = time.time()
        try:
            stream = await self.client.chat.completions.create(
                model=model_name,
                messages=[{"role": "user", "content": prompt}],
                stream=True,
            )
        except OpenAIError as e:
            logger.warning(
                "OpenRouter stream initiation failed after %.0fms: %s",
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise ProviderError(
                provider=self.name,
                context={
                    "model": model_name,
                    "error_type": type(e).__name__,
                    "status_code": getattr(e, "status_code", None),
                },
            ) from e

        logger.info(
            "OpenRouter stream opened for model=%s in %.0fms",
            model_name,
            (time.time() - start_time) * 1000,
        )
        return self._iter_text(stream)

    @staticmethod
    async def _iter_text(stream) -> AsyncIterator[str]:
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            text = getattr(delta, "content", None)
            if text:
                yield text

    async def health_check(self) -> bool:
        """Lists models; does not consume completion quota."""
        try:
            await self.client.models.list()
            return True
        except OpenAIError as e:
            logger.warning("OpenRouter health check failed: %s", str(e))
            return False

    async def close(self) -> None:
        await self.client.close()
