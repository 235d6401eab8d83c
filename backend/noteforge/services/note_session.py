"""
NoteForge Backend - Editing Session
====================================

What:  The control flow of one open document, tying the content store, the
       editor surface, the autosave coordinator, the ingestion adapters and
       the summarization stream together.
Who:   The client side of the application; one NoteSession per open document.

Flow:
    open()                     load → editor (no update emitted) → last_saved
    editor change              → autosave debounce → store.save
    ingest_and_summarize()     adapter → "AI is generating..." → streamed
                               markdown rendered chunk by chunk
    save_now()                 Ctrl+S: cancel the timer, save immediately
    close()                    drop the armed timer, wait for in-flight saves

Failures surface as notifications; nothing here raises to the caller.
"""

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Protocol

from noteforge.client import NotesApiClient
from noteforge.editor import EditorSurface, StreamAccumulator
from noteforge.exceptions import InvalidReference, NoteForgeError
from noteforge.ingestion import build_adapters
from noteforge.ingestion.base import IngestionAdapter, SourceKind
from noteforge.services.autosave import AutosaveCoordinator, AutosaveState
from noteforge.services.notifications import NotificationCenter

if TYPE_CHECKING:
    import httpx

    from noteforge.config import Settings

logger = logging.getLogger(__name__)

GENERATING_PLACEHOLDER = "AI is generating..."

MSG_LOAD_FAILED = "Failed to load file"
MSG_SAVE_FAILED = "Failed to save file"
MSG_INVALID_YOUTUBE = "Invalid YouTube link or ID"
MSG_INGEST_FAILED = "Failed to parse or send content"

SummarizeFn = Callable[..., AsyncIterator[str]]


class DocumentStore(Protocol):
    """ContentStore in-process, or NotesApiClient over HTTP."""

    def load(self, document_id: uuid.UUID) -> Awaitable[Any]:
        ...

    def save(self, document_id: uuid.UUID, content: str) -> Awaitable[Any]:
        ...


class NoteSession:
    def __init__(
        self,
        document_id: uuid.UUID,
        store: DocumentStore,
        editor: EditorSurface,
        adapters: Dict[SourceKind, IngestionAdapter],
        summarize: SummarizeFn,
        notifier: NotificationCenter,
        autosave_delay: float,
        model_name: str,
        autosave_enabled: bool = True,
    ):
        self.document_id = document_id
        self.store = store
        self.editor = editor
        self.adapters = adapters
        self.summarize = summarize
        self.notifier = notifier
        self.model_name = model_name
        self.autosave_enabled = autosave_enabled
        self.last_saved: Optional[datetime] = None
        self.loading = False
        self.is_open = False
        self.autosave = AutosaveCoordinator(
            save=self._persist,
            delay_seconds=autosave_delay,
            on_saved=self._on_saved,
            on_error=self._on_save_error,
        )

    async def open(self) -> bool:
        """Loads the stored content into the editor; False when loading failed."""
        self.loading = True
        try:
            loaded = await self.store.load(self.document_id)
        except NoteForgeError as e:
            logger.error("Loading document %s failed: %s", self.document_id, e.message)
            self.notifier.error(MSG_LOAD_FAILED)
            self.editor.set_content("", emit_update=False)
            return False
        finally:
            self.loading = False

        self.editor.set_content(loaded.content or "", emit_update=False)
        self.last_saved = loaded.updated_at
        self.editor.on_update = self._on_editor_update
        self.is_open = True
        logger.info("Opened document %s (version %d)", self.document_id, loaded.version)
        return True

    async def ingest_and_summarize(
        self,
        kind: SourceKind,
        source: Any,
        prompt: Optional[str] = None,
    ) -> bool:
        """
        Extracts the source, then streams generated notes into the editor.

        Returns True when the stream ran to its end.
        """
        try:
            adapter = self.adapters[kind]
            extracted = await adapter.extract(source)

            self.editor.set_content(GENERATING_PLACEHOLDER, emit_update=False)
            accumulator = StreamAccumulator(self.editor)
            async for chunk in self.summarize(extracted.text, self.model_name, prompt):
                accumulator.feed(chunk)
        except InvalidReference:
            self.notifier.error(MSG_INVALID_YOUTUBE)
            return False
        except Exception as e:
            logger.error(
                "Ingestion of %s into document %s failed: %s",
                getattr(kind, "value", kind),
                self.document_id,
                str(e),
            )
            self.notifier.error(MSG_INGEST_FAILED)
            return False

        logger.info(
            "Streamed %d chunks of notes into document %s",
            accumulator.chunks,
            self.document_id,
        )
        return True

    async def save_now(self) -> None:
        await self.autosave.save_now(self.editor.get_html())

    async def close(self) -> None:
        self.editor.on_update = None
        self.autosave.cancel()
        await self.autosave.drain()
        self.is_open = False

    @property
    def saving(self) -> bool:
        return self.autosave.state is AutosaveState.SAVING

    # ── Callbacks ─────────────────────────────────────────────────────────

    def _on_editor_update(self, html: str) -> None:
        if self.autosave_enabled:
            self.autosave.notify_change(html)

    async def _persist(self, html: str) -> Any:
        return await self.store.save(self.document_id, html)

    def _on_saved(self, result: Any) -> None:
        self.last_saved = getattr(result, "updated_at", None) or self.last_saved

    def _on_save_error(self, error: Exception) -> None:
        self.notifier.error(MSG_SAVE_FAILED)


def open_note_session(
    document_id: uuid.UUID,
    http_client: "httpx.AsyncClient",
    settings: "Settings",
    uploader: Optional[Any] = None,
    model_name: Optional[str] = None,
) -> NoteSession:
    """
    Wires a NoteSession for the browser side of the app: every store, parse
    and summarization call goes through the HTTP API.
    """
    api_client = NotesApiClient(http_client)
    return NoteSession(
        document_id=document_id,
        store=api_client,
        editor=EditorSurface(uploader=uploader),
        adapters=build_adapters(api_client),
        summarize=api_client.stream_notes,
        notifier=NotificationCenter(enabled=settings.show_notifications),
        autosave_delay=settings.autosave_delay_seconds,
        model_name=model_name or settings.default_model,
        autosave_enabled=settings.autosave_enabled,
    )
