"""
NoteForge Backend - Notification Center
========================================

Toast-style notifications raised by the client-side components (editing
session, autosave). Messages are kept in memory for the UI to render and
mirrored to the log. When notifications are disabled they are only logged.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class NotificationLevel(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationCenter:
    def __init__(
        self,
        enabled: bool = True,
        listener: Optional[Callable[[Notification], None]] = None,
    ):
        self.enabled = enabled
        self.listener = listener
        self.history: List[Notification] = []

    def success(self, message: str) -> None:
        self._push(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> None:
        self._push(NotificationLevel.ERROR, message)

    def info(self, message: str) -> None:
        self._push(NotificationLevel.INFO, message)

    @property
    def messages(self) -> List[str]:
        return [n.message for n in self.history]

    def _push(self, level: NotificationLevel, message: str) -> None:
        log_level = logging.WARNING if level is NotificationLevel.ERROR else logging.INFO
        logger.log(log_level, "Notification (%s): %s", level.value, message)
        if not self.enabled:
            return
        notification = Notification(level=level, message=message)
        self.history.append(notification)
        if self.listener is not None:
            self.listener(notification)
