"""Event fan-out for Screeps console client listeners."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

_LOGGER = logging.getLogger(__name__)


class EventType(Enum):
    """Events published by the console client.

    Payloads:
        LOG: human readable progress text
        ERROR: human readable failure text
        CONSOLE: one line of console output
        STATUS: ``{"state": "connecting" | "connected" | "disconnected"}``
        TOKEN: the rotated token value
    """

    LOG = "log"
    ERROR = "error"
    CONSOLE = "console"
    STATUS = "status"
    TOKEN = "token"


class ConnectionStatus(str, Enum):
    """Coarse connection status reported to listeners."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


Listener = Callable[[Any], None]


class EventEmitter:
    """Publish events to any number of listeners."""

    def __init__(self) -> None:
        self._listeners: dict[EventType, list[Listener]] = {
            event: [] for event in EventType
        }

    def on(self, event: EventType, callback: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners[event].append(callback)

        def _remove() -> None:
            try:
                self._listeners[event].remove(callback)
            except ValueError:
                pass

        return _remove

    def listener_count(self, event: EventType) -> int:
        return len(self._listeners[event])

    def emit(self, event: EventType, payload: Any) -> None:
        """Call every listener for ``event`` in registration order."""
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception as err:
                _LOGGER.exception("%s listener error: %s", event.value, err)
