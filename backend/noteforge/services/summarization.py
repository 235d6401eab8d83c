"""
NoteForge Backend - Summarization Proxy Service
================================================

What:  Turns ingested content into a prompt and relays the provider's token
       stream to the caller.
How:   1. Circuit breaker check (fail fast while the provider is down)
       2. Prompt built: caller prompt verbatim, or content capped to the token
          budget and embedded in the default notes template
       3. Provider stream opened (awaited, so refusals become a 503 before
          any body byte is sent)
       4. Deltas yielded unchanged; a failure mid-stream is logged and the
          stream simply ends
Who:   POST /api/ai-stream and, in-process, NoteSession.

No retries: a failed summarization is retried by the user re-submitting.
"""

import logging
import math
import re
from typing import AsyncIterator, Optional

from noteforge.exceptions import ProviderError
from noteforge.middleware.request_id import get_request_id
from noteforge.services.llm_base import CircuitBreaker, LLMService

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TEMPLATE = (
    "Make detailed notes on the following content in markdown format:\n\n{content}"
)

TRUNCATION_MARKER = "\n\n[Content truncated to fit the model context window]"

# Rough character-per-token ratio used for the budget estimate
CHARS_PER_TOKEN = 2

_WHITESPACE = re.compile(r"\s")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_for_token_budget(
    text: str,
    max_tokens: int,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """
    Caps `text` so its estimated token count fits `max_tokens`.

    Text already within budget comes back unchanged. Otherwise the cut lands
    at 90% of the character budget (or earlier if the marker would not fit),
    moves back to a whitespace in the last tenth before the cut when there is
    one, and the marker is appended. A budget too small to hold the marker
    gets a plain hard cut. The result never exceeds 2 * max_tokens characters.
    """
    if estimate_tokens(text) <= max_tokens:
        return text

    max_chars = max_tokens * CHARS_PER_TOKEN
    cut = min(math.floor(0.9 * max_chars), max_chars - len(marker))
    if cut <= 0:
        return text[:max_chars]

    head = text[:cut]
    # Snap only within the last tenth of the head
    floor = cut - cut // 10
    last_space = None
    for match in _WHITESPACE.finditer(head, floor):
        last_space = match.start()
    if last_space is not None:
        head = head[:last_space]

    return head.rstrip() + marker


def build_prompt(content: str, prompt: Optional[str], max_tokens: int) -> str:
    """A non-empty caller prompt wins verbatim; otherwise the default template."""
    if prompt and prompt.strip():
        return prompt
    return DEFAULT_PROMPT_TEMPLATE.format(
        content=truncate_for_token_budget(content, max_tokens)
    )


class SummarizationService:
    """Owns the configured provider, its circuit breaker and the prompt budget."""

    def __init__(
        self,
        provider: LLMService,
        token_budget: int = 30_000,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.provider = provider
        self.token_budget = token_budget
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

    async def open_stream(
        self,
        model_name: str,
        content: str,
        prompt: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Opens a completion stream and returns an iterator over its text deltas.

        Raises:
            CircuitBreakerOpenError: Recent initiations kept failing.
            ProviderError: The provider refused or could not be reached.
        """
        self.circuit_breaker.can_execute()

        full_prompt = build_prompt(content, prompt, self.token_budget)
        logger.info(
            "Opening %s stream: model=%s, prompt_chars=%d, custom_prompt=%s",
            self.provider.name,
            model_name,
            len(full_prompt),
            bool(prompt and prompt.strip()),
        )

        try:
            deltas = await self.provider.start_stream(model_name, full_prompt)
        except ProviderError:
            self.circuit_breaker.record_failure()
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("Unexpected provider error: %s", str(e), exc_info=True)
            raise ProviderError(
                provider=self.provider.name,
                context={"error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        return self._relay(deltas, model_name)

    async def _relay(self, deltas: AsyncIterator[str], model_name: str) -> AsyncIterator[str]:
        request_id = get_request_id()
        chunks = 0
        chars = 0
        try:
            async for delta in deltas:
                chunks += 1
                chars += len(delta)
                yield delta
        except Exception as e:
            # The response has started; the client only sees the stream end.
            logger.error(
                "[%s] %s stream for model=%s failed after %d chunks: %s",
                request_id,
                self.provider.name,
                model_name,
                chunks,
                str(e),
            )
            return
        logger.info(
            "[%s] %s stream completed: %d chunks, %d chars",
            request_id,
            self.provider.name,
            chunks,
            chars,
        )
