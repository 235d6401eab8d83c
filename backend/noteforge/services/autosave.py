"""
NoteForge Backend - Autosave Coordinator
=========================================

What:  Debounced persistence of editor content.
How:   Every change cancels the armed timer task and arms a new one; when a
       timer survives the full quiet period it saves the content of the last
       change. A manual save cancels the timer and saves immediately.

States:
    IDLE          nothing armed, nothing in flight
    PENDING_SAVE  a timer is armed
    SAVING        at least one save is in flight and no timer is armed

Overlapping saves are not serialized: a manual save issued while another
save is in flight runs alongside it and the later write wins in the store.
Failures never escape; they are logged and handed to `on_error`.
"""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

SaveFn = Callable[[str], Awaitable[object]]


class AutosaveState(str, enum.Enum):
    IDLE = "idle"
    PENDING_SAVE = "pending_save"
    SAVING = "saving"


class AutosaveCoordinator:
    """
    Args:
        save:          Coroutine function persisting the given HTML
        delay_seconds: Quiet period before a change is saved
        on_saved:      Called with the save's return value after each success
        on_error:      Called with the exception after each failed save
    """

    def __init__(
        self,
        save: SaveFn,
        delay_seconds: float,
        on_saved: Optional[Callable[[object], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._save = save
        self.delay_seconds = delay_seconds
        self.on_saved = on_saved
        self.on_error = on_error
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self.save_count = 0

    @property
    def state(self) -> AutosaveState:
        if self._timer is not None and not self._timer.done():
            return AutosaveState.PENDING_SAVE
        if self._in_flight:
            return AutosaveState.SAVING
        return AutosaveState.IDLE

    def notify_change(self, content: str) -> None:
        """Restarts the quiet period; the pending content becomes `content`."""
        self._cancel_timer()
        self._timer = asyncio.create_task(self._fire_after_delay(content))

    async def save_now(self, content: str) -> None:
        """Cancels the armed timer and saves immediately (Ctrl+S)."""
        self._cancel_timer()
        await self._run_save(content)

    def cancel(self) -> None:
        """Drops the armed timer without saving."""
        self._cancel_timer()

    async def drain(self) -> None:
        """Waits for every in-flight save to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_after_delay(self, content: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        # From here on the save belongs to the in-flight set, not the timer
        self._timer = None
        await self._run_save(content)

    async def _run_save(self, content: str) -> None:
        task = asyncio.create_task(self._save_and_report(content))
        self._in_flight.add(task)
        try:
            await asyncio.shield(task)
        finally:
            if task.done():
                self._in_flight.discard(task)
            else:
                task.add_done_callback(self._in_flight.discard)

    async def _save_and_report(self, content: str) -> None:
        try:
            result = await self._save(content)
        except Exception as e:
            logger.warning("Autosave failed: %s", str(e))
            if self.on_error is not None:
                self.on_error(e)
            return

        self.save_count += 1
        logger.debug("Autosaved %d chars", len(content))
        if self.on_saved is not None:
            self.on_saved(result)
