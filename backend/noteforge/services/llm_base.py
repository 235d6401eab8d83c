"""
NoteForge Backend - Completion Provider Interface
==================================================

What:  Abstract streaming-completion contract plus the circuit breaker that
       guards stream initiation.
How:   Concrete providers (OpenRouterService, GeminiService) inherit from
       LLMService and implement start_stream(). SummarizationService owns one
       provider and one CircuitBreaker.
Who:   Selected by dependencies.build_services() from LLM_PROVIDER.

Contract split:
    start_stream() is awaited before any byte reaches the client, so a provider
    that refuses the request surfaces as ProviderError (503). The iterator it
    returns yields raw text deltas; failures while iterating end the stream.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from noteforge.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker around completion stream initiation.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → One request goes through
            → On success: CLOSED; on failure: back to OPEN

    Not thread-safe; uvicorn async workers share one event loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a request may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.monotonic() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Provider interface
# ══════════════════════════════════════════════════════════════════════════

class LLMService(ABC):
    """
    Abstract interface for streaming text completion.

    Implementations:
        - OpenRouterService: OpenAI-compatible chat completions via OpenRouter
        - GeminiService: Google Generative AI
    """

    name: str = "llm"

    @abstractmethod
    async def start_stream(self, model_name: str, prompt: str) -> AsyncIterator[str]:
        """
        Opens a completion stream for a single-turn user prompt.

        Args:
            model_name: Provider model identifier, passed through untouched.
            prompt:     Full prompt text.

        Returns:
            Async iterator of text deltas, in provider order. Empty deltas are
            skipped by implementations.

        Raises:
            ProviderError: The provider could not be reached or refused the
                request. Nothing has been streamed at that point.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Lightweight connectivity check that does not consume completion quota.

        Returns: True if the provider is reachable, False otherwise.
        """
        ...

    async def close(self) -> None:
        """Releases provider clients. Called during application shutdown."""
        return None
