"""
NoteForge Backend - Completion Provider Tests
==============================================

Both providers are driven through mocked SDK objects; no network calls.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from noteforge.exceptions import ProviderError
from noteforge.services.gemini_service import GeminiService
from noteforge.services.openrouter_service import OpenRouterService


async def async_iter(items):
    for item in items:
        yield item


def openai_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class TestOpenRouterService:
    def _service(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        client.models.list = AsyncMock()
        client.close = AsyncMock()
        return OpenRouterService(api_key="k", client=client), client

    @pytest.mark.asyncio
    async def test_streams_delta_content(self):
        service, client = self._service()
        client.chat.completions.create.return_value = async_iter(
            [openai_chunk("Hel"), openai_chunk(None), openai_chunk("lo"), SimpleNamespace(choices=[])]
        )

        stream = await service.start_stream("deepseek/deepseek-r1:free", "prompt")

        assert [c async for c in stream] == ["Hel", "lo"]
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "deepseek/deepseek-r1:free"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_initiation_error_becomes_provider_error(self):
        service, client = self._service()
        request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
        client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(ProviderError) as exc_info:
            await service.start_stream("m", "p")
        assert exc_info.value.context["provider"] == "openrouter"

    @pytest.mark.asyncio
    async def test_health_check(self):
        service, client = self._service()
        assert await service.health_check() is True

        request = httpx.Request("GET", "https://openrouter.ai/api/v1/models")
        client.models.list.side_effect = openai.APIConnectionError(request=request)
        assert await service.health_check() is False

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        service, client = self._service()
        await service.close()
        client.close.assert_awaited_once()


class TestGeminiService:
    @pytest.mark.asyncio
    async def test_streams_chunk_text(self):
        class Chunk:
            def __init__(self, text):
                self._text = text

            @property
            def text(self):
                if self._text is None:
                    raise ValueError("no text part")
                return self._text

        model = MagicMock()
        model.generate_content_async = AsyncMock(
            return_value=async_iter([Chunk("A"), Chunk(None), Chunk("B")])
        )
        with patch("noteforge.services.gemini_service.genai") as genai:
            genai.GenerativeModel.return_value = model
            service = GeminiService(api_key="k")
            stream = await service.start_stream("gemini-1.5-flash", "prompt")
            chunks = [c async for c in stream]

        assert chunks == ["A", "B"]
        genai.GenerativeModel.assert_called_once_with("gemini-1.5-flash")
        model.generate_content_async.assert_awaited_once_with("prompt", stream=True)

    @pytest.mark.asyncio
    async def test_initiation_error_becomes_provider_error(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=RuntimeError("quota"))
        with patch("noteforge.services.gemini_service.genai") as genai:
            genai.GenerativeModel.return_value = model
            service = GeminiService(api_key="k")
            with pytest.raises(ProviderError):
                await service.start_stream("gemini-1.5-flash", "prompt")

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        with patch("noteforge.services.gemini_service.genai") as genai:
            genai.list_models.side_effect = RuntimeError("no network")
            service = GeminiService(api_key="k")
            assert await service.health_check() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("models", [[], ["models/gemini-1.5-flash"]])
    async def test_health_check_lists_models(self, models):
        with patch("noteforge.services.gemini_service.genai") as genai:
            genai.list_models.return_value = iter(models)
            service = GeminiService(api_key="k")
            assert await service.health_check() is True
            genai.list_models.assert_called_once_with()
