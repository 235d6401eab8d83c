"""
NoteForge Backend - API Endpoint Tests
=======================================

What:  Every route through the full middleware chain, using HTTPX over
       ASGITransport against a per-test SQLite database and a fake provider.
"""

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from youtube_transcript_api import TranscriptsDisabled

from noteforge.ingestion.youtube import YouTubeAdapter
from noteforge.main import create_app

from conftest import TEST_USER_ID, build_docx, build_pdf

VIDEO_ID = "dQw4w9WgXcQ"


class TestContentRoutes:
    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.get(f"/api/documents/{uuid.uuid4()}/content")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthorized"
        assert body["request_id"]

    @pytest.mark.asyncio
    async def test_load_creates_then_save_replaces(self, client, auth_headers):
        document_id = uuid.uuid4()
        url = f"/api/documents/{document_id}/content"

        loaded = await client.get(url, headers=auth_headers)
        assert loaded.status_code == 200
        assert loaded.json()["content"] == ""
        assert loaded.json()["version"] == 1
        assert loaded.json()["file_id"] == str(document_id)

        saved = await client.put(url, json={"content": "<p>Hi</p>"}, headers=auth_headers)
        assert saved.status_code == 200
        assert saved.json()["version"] == 2

        reloaded = await client.get(url, headers=auth_headers)
        assert reloaded.json()["content"] == "<p>Hi</p>"

    @pytest.mark.asyncio
    async def test_save_unknown_document_is_503(self, client, auth_headers):
        response = await client.put(
            f"/api/documents/{uuid.uuid4()}/content",
            json={"content": "<p>x</p>"},
            headers=auth_headers,
        )

        assert response.status_code == 503
        assert response.json()["error"] == "store_unavailable"

    @pytest.mark.asyncio
    async def test_bad_document_id(self, client, auth_headers):
        response = await client.get("/api/documents/not-a-uuid/content", headers=auth_headers)
        assert response.status_code == 422


class TestParseRoutes:
    @pytest.mark.asyncio
    async def test_parse_pdf(self, client):
        response = await client.post(
            "/api/parse-pdf",
            content=build_pdf("Hello PDF"),
            headers={"Content-Type": "application/pdf"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "Hello" in response.text

    @pytest.mark.asyncio
    async def test_parse_pdf_failure_is_plain_500(self, client):
        response = await client.post("/api/parse-pdf", content=b"not a pdf")

        assert response.status_code == 500
        assert response.text == "Failed to parse PDF"

    @pytest.mark.asyncio
    async def test_parse_document(self, client):
        response = await client.post("/api/parse-document", content=build_docx(["Alpha"]))

        assert response.status_code == 200
        assert "<p>Alpha</p>" in response.json()["html"]

    @pytest.mark.asyncio
    async def test_parse_document_failure_is_422(self, client):
        response = await client.post("/api/parse-document", content=b"plain")

        assert response.status_code == 422
        assert response.json()["error"] == "parse_error"

    @pytest.mark.asyncio
    async def test_youtube_transcript(self, client, services):
        api = MagicMock()
        api.fetch.return_value = [SimpleNamespace(text="never"), SimpleNamespace(text="gonna")]
        services.youtube = YouTubeAdapter(api)

        response = await client.post(
            "/api/ingest/youtube",
            json={"reference": f"https://youtu.be/{VIDEO_ID}"},
        )

        assert response.status_code == 200
        assert response.json() == {"video_id": VIDEO_ID, "text": "never gonna"}

    @pytest.mark.asyncio
    async def test_youtube_invalid_reference(self, client):
        response = await client.post("/api/ingest/youtube", json={"reference": "nope"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid YouTube link or ID"

    @pytest.mark.asyncio
    async def test_youtube_no_transcript(self, client, services):
        api = MagicMock()
        api.fetch.side_effect = TranscriptsDisabled(VIDEO_ID)
        services.youtube = YouTubeAdapter(api)

        response = await client.post("/api/ingest/youtube", json={"reference": VIDEO_ID})

        assert response.status_code == 404
        assert response.json()["error"] == "transcript_unavailable"


class TestAIStream:
    @pytest.mark.asyncio
    async def test_streams_raw_text(self, client, fake_llm):
        response = await client.post(
            "/api/ai-stream",
            json={"modelName": "deepseek/deepseek-r1:free", "content": "Photosynthesis..."},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.text == "".join(fake_llm.deltas)
        model, prompt = fake_llm.calls[0]
        assert model == "deepseek/deepseek-r1:free"
        assert "Photosynthesis..." in prompt

    @pytest.mark.asyncio
    async def test_custom_prompt_forwarded_verbatim(self, client, fake_llm):
        await client.post(
            "/api/ai-stream",
            json={"modelName": "m", "content": "ignored", "prompt": "Write a haiku"},
        )
        assert fake_llm.calls[0][1] == "Write a haiku"

    @pytest.mark.asyncio
    async def test_provider_refusal_is_503(self, client, fake_llm):
        fake_llm.fail_start = True

        response = await client.post("/api/ai-stream", json={"modelName": "m", "content": "x"})

        assert response.status_code == 503
        assert response.json()["error"] == "provider_error"

    @pytest.mark.asyncio
    async def test_circuit_open_sets_retry_after(self, client, fake_llm):
        fake_llm.fail_start = True
        for _ in range(2):
            await client.post("/api/ai-stream", json={"modelName": "m", "content": "x"})

        response = await client.post("/api/ai-stream", json={"modelName": "m", "content": "x"})

        assert response.status_code == 503
        assert response.json()["error"] == "service_unavailable"
        assert int(response.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_mid_stream_failure_truncates_body(self, client, fake_llm):
        fake_llm.fail_after = 1

        response = await client.post("/api/ai-stream", json={"modelName": "m", "content": "x"})

        assert response.status_code == 200
        assert response.text == fake_llm.deltas[0]

    @pytest.mark.asyncio
    async def test_missing_model_name(self, client):
        response = await client.post("/api/ai-stream", json={"content": "x"})
        assert response.status_code == 422


class TestUploads:
    @pytest.mark.asyncio
    async def test_upload_requires_session(self, client, sample_png_bytes):
        response = await client.post(
            "/api/uploads",
            files={"file": ("a.png", sample_png_bytes, "image/png")},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_upload_then_serve(self, client, auth_headers, sample_png_bytes):
        pytest.importorskip("magic")

        response = await client.post(
            "/api/uploads",
            files={"file": ("a.png", sample_png_bytes, "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 201
        url = response.json()["url"]
        assert url.startswith("/api/uploads/")

        served = await client.get(url)
        assert served.status_code == 200
        assert served.content == sample_png_bytes
        assert "max-age" in served.headers["cache-control"]

    @pytest.mark.asyncio
    async def test_upload_rejects_non_image(self, client, auth_headers):
        response = await client.post(
            "/api/uploads",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_serve_missing(self, client):
        response = await client.get("/api/uploads/2024/01/01/missing.png")
        assert response.status_code == 404


class TestSessionRoutes:
    @pytest.mark.asyncio
    async def test_home_redirects_to_login(self, client):
        response = await client.get("/")
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    @pytest.mark.asyncio
    async def test_home_with_session(self, client, auth_headers):
        response = await client.get("/", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["user_id"] == TEST_USER_ID

    @pytest.mark.asyncio
    async def test_login_redirects_when_signed_in(self, client, auth_headers):
        response = await client.get("/login", headers=auth_headers)
        assert response.status_code == 302
        assert response.headers["location"] == "/"

    @pytest.mark.asyncio
    async def test_login_page_when_signed_out(self, client):
        response = await client.get("/login")
        assert response.status_code == 200
        assert response.json()["authenticated"] is False


class TestHealthAndMiddleware:
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["provider"] == "fake"

    @pytest.mark.asyncio
    async def test_degraded_when_provider_down(self, client, fake_llm):
        fake_llm.healthy = False

        body = (await client.get("/health")).json()

        assert body["status"] == "degraded"
        assert body["llm"] == "unavailable"

    @pytest.mark.asyncio
    async def test_request_id_propagated(self, client):
        response = await client.get("/login", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_rate_limit(self, services, settings):
        from httpx import ASGITransport, AsyncClient

        limited = create_app(
            settings=settings.model_copy(update={"rate_limit_requests": 10}),
            services=services,
        )
        transport = ASGITransport(app=limited)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            for _ in range(10):
                assert (await http_client.get("/login")).status_code == 200
            response = await http_client.get("/login")

        assert response.status_code == 429
        assert "Retry-After" in response.headers
        assert response.json()["error"] == "rate_limit_exceeded"
