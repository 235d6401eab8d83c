"""
NoteForge Backend - Editing Session Tests
==========================================

End-to-end flows of one open document: the session talks to the app over
HTTP (NotesApiClient + ASGITransport), so load, autosave, ingestion and the
summarization stream all cross the real routes.
"""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from noteforge.client import NotesApiClient
from noteforge.editor import EditorSurface
from noteforge.exceptions import StoreUnavailable
from noteforge.ingestion import SourceKind, build_adapters
from noteforge.ingestion.youtube import YouTubeAdapter
from noteforge.services.note_session import (
    GENERATING_PLACEHOLDER,
    MSG_INGEST_FAILED,
    MSG_INVALID_YOUTUBE,
    MSG_LOAD_FAILED,
    MSG_SAVE_FAILED,
    NoteSession,
    open_note_session,
)
from noteforge.services.notifications import NotificationCenter

from conftest import build_pdf

DELAY = 0.02


@pytest_asyncio.fixture
async def api_client(app, auth_headers):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as http_client:
        yield NotesApiClient(http_client)


def make_session(store, api_client=None, autosave_enabled=True):
    notifier = NotificationCenter()
    adapters = build_adapters(
        api_client=api_client or MagicMock(),
        youtube=YouTubeAdapter(MagicMock()),
    )
    summarize = api_client.stream_notes if api_client is not None else MagicMock()
    session = NoteSession(
        document_id=uuid.uuid4(),
        store=store,
        editor=EditorSurface(),
        adapters=adapters,
        summarize=summarize,
        notifier=notifier,
        autosave_delay=DELAY,
        model_name="deepseek/deepseek-r1:free",
        autosave_enabled=autosave_enabled,
    )
    return session, notifier


async def settle():
    await asyncio.sleep(DELAY * 5)


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_new_document(self, api_client):
        session, notifier = make_session(api_client, api_client)

        assert await session.open() is True

        assert session.editor.get_html() == "<p></p>"
        assert session.last_saved is not None
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_load_failure_notifies(self):
        store = MagicMock()
        store.load = AsyncMock(side_effect=StoreUnavailable())
        session, notifier = make_session(store)

        assert await session.open() is False
        assert notifier.messages == [MSG_LOAD_FAILED]

    @pytest.mark.asyncio
    async def test_loading_does_not_trigger_autosave(self, services):
        store = services.content_store
        session, _ = make_session(store)
        document_id = session.document_id
        await store.load(document_id)
        await store.save(document_id, "<p>existing</p>")

        await session.open()
        await settle()

        assert session.autosave.save_count == 0
        assert session.editor.get_html() == "<p>existing</p>"


class TestAutosave:
    @pytest.mark.asyncio
    async def test_edit_is_persisted_after_quiet_period(self, api_client, services):
        session, _ = make_session(api_client, api_client)
        await session.open()

        session.editor.set_content("<p>typed</p>", emit_update=True)
        await settle()
        await session.close()

        stored = await services.content_store.load(session.document_id)
        assert stored.content == "<p>typed</p>"
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_disabled_autosave_never_saves(self, services):
        session, _ = make_session(services.content_store, autosave_enabled=False)
        await session.open()

        session.editor.set_content("<p>typed</p>", emit_update=True)
        await settle()

        assert session.autosave.save_count == 0

    @pytest.mark.asyncio
    async def test_manual_save(self, services):
        session, _ = make_session(services.content_store)
        await session.open()
        session.editor.set_content("<p>ctrl s</p>")

        await session.save_now()

        stored = await services.content_store.load(session.document_id)
        assert stored.content == "<p>ctrl s</p>"

    @pytest.mark.asyncio
    async def test_save_failure_notifies(self):
        store = MagicMock()
        store.load = AsyncMock(
            return_value=MagicMock(content="", version=1, updated_at=None)
        )
        store.save = AsyncMock(side_effect=StoreUnavailable())
        session, notifier = make_session(store)
        await session.open()

        await session.save_now()

        assert notifier.messages == [MSG_SAVE_FAILED]
        # Editor content is kept for the user to retry
        assert session.editor.get_html() == "<p></p>"


class TestIngestAndSummarize:
    @pytest.mark.asyncio
    async def test_raw_text_streams_notes_into_editor(self, api_client, services, fake_llm):
        session, notifier = make_session(api_client, api_client)
        await session.open()

        ok = await session.ingest_and_summarize(SourceKind.RAW_TEXT, "Mitochondria are organelles.")

        assert ok is True
        html = session.editor.get_html()
        assert html.startswith("<h1>Notes</h1>")
        assert "<li>first</li>" in html
        assert "Mitochondria are organelles." in fake_llm.calls[0][1]
        assert notifier.messages == []

        await settle()
        await session.close()
        stored = await services.content_store.load(session.document_id)
        assert stored.content == html

    @pytest.mark.asyncio
    async def test_pdf_goes_through_parse_route(self, api_client, fake_llm):
        session, _ = make_session(api_client, api_client)
        await session.open()

        ok = await session.ingest_and_summarize(SourceKind.PDF, build_pdf("Quarterly report"))

        assert ok is True
        assert "Quarterly" in fake_llm.calls[0][1]
        await session.close()

    @pytest.mark.asyncio
    async def test_custom_prompt(self, api_client, fake_llm):
        session, _ = make_session(api_client, api_client)
        await session.open()

        await session.ingest_and_summarize(SourceKind.RAW_TEXT, "text", prompt="List the verbs")

        assert fake_llm.calls[0][1] == "List the verbs"
        await session.close()

    @pytest.mark.asyncio
    async def test_invalid_youtube_reference(self, api_client, fake_llm):
        session, notifier = make_session(api_client, api_client)
        await session.open()

        ok = await session.ingest_and_summarize(SourceKind.YOUTUBE, "not-a-valid-id")

        assert ok is False
        assert notifier.messages == [MSG_INVALID_YOUTUBE]
        assert fake_llm.calls == []
        await session.close()

    @pytest.mark.asyncio
    async def test_provider_failure_notifies(self, api_client, fake_llm):
        fake_llm.fail_start = True
        session, notifier = make_session(api_client, api_client)
        await session.open()

        ok = await session.ingest_and_summarize(SourceKind.RAW_TEXT, "text")

        assert ok is False
        assert notifier.messages == [MSG_INGEST_FAILED]
        assert session.editor.get_text() == GENERATING_PLACEHOLDER
        await session.close()


class TestOpenNoteSession:
    @pytest.mark.asyncio
    async def test_wired_from_settings(self, app, settings, auth_headers):
        quiet = settings.model_copy(update={"show_notifications": False, "autosave_enabled": False})
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as http_client:
            session = open_note_session(uuid.uuid4(), http_client, quiet)

            assert session.model_name == quiet.default_model
            assert session.autosave.delay_seconds == quiet.autosave_delay_seconds
            assert session.autosave_enabled is False
            assert await session.open() is True

            await session.ingest_and_summarize(SourceKind.YOUTUBE, "bad")
            # Disabled notifications are logged only
            assert session.notifier.messages == []
