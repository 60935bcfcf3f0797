# app/core/notify.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Transient notification queue drained by the page after each action."""

    def __init__(self):
        self._events: List[Notification] = []

    def _push(self, level: str, message: str) -> Notification:
        event = Notification(level, message)
        self._events.append(event)
        return event

    def success(self, message: str) -> Notification:
        return self._push(SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self._push(ERROR, message)

    def warning(self, message: str) -> Notification:
        logger.warning(message)
        return self._push(WARNING, message)

    def drain(self) -> List[Notification]:
        events, self._events = self._events, []
        return events
