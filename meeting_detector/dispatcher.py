"""Listener registry for detector events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from meeting_detector.models import MeetingSignal, ProcessExit

logger = logging.getLogger(__name__)

MeetingEventCallback = Callable[[MeetingSignal], Any]
ErrorEventCallback = Callable[[Exception], Any]
ExitEventCallback = Callable[[ProcessExit], Any]


class DetectorEvent(StrEnum):
    MEETING = "meeting"
    ERROR = "error"
    EXIT = "exit"


class EventDispatcher:
    """Delivers detector events to any number of listeners per event type.

    Listeners run synchronously in registration order. A listener that
    raises is logged and the remaining listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[DetectorEvent, list[Callable[[Any], Any]]] = defaultdict(list)

    def on(self, event: DetectorEvent | str, callback: Callable[[Any], Any]) -> None:
        self._listeners[DetectorEvent(event)].append(callback)

    def off(self, event: DetectorEvent | str, callback: Callable[[Any], Any]) -> bool:
        listeners = self._listeners[DetectorEvent(event)]
        if callback in listeners:
            listeners.remove(callback)
            return True
        return False

    def listener_count(self, event: DetectorEvent | str) -> int:
        return len(self._listeners[DetectorEvent(event)])

    def emit(self, event: DetectorEvent | str, payload: Any) -> int:
        """Call every listener for ``event``. Returns the number called."""
        listeners = list(self._listeners[DetectorEvent(event)])
        for callback in listeners:
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener for %s event failed", event)
        return len(listeners)
