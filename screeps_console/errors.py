"""Client error types for Screeps console interactions."""

from __future__ import annotations


class ScreepsClientError(Exception):
    """Base error for Screeps console client failures."""


class ScreepsAuthError(ScreepsClientError):
    """Token was rejected or no user identity could be resolved."""


class ScreepsTransportError(ScreepsClientError):
    """Socket-level failure on the console stream."""


class ScreepsTimeout(ScreepsTransportError):
    """Timeout while communicating with the server."""


class ScreepsConnectionError(ScreepsTransportError):
    """Network connection to the server failed."""


class ScreepsHandshakeError(ScreepsTransportError):
    """WebSocket handshake failed."""


class ScreepsDecodeError(ScreepsClientError):
    """Malformed SockJS frame or channel payload."""


class ScreepsResponseError(ScreepsClientError):
    """HTTP response error from the server."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class ScreepsCommandSendError(ScreepsResponseError):
    """Console command could not be delivered to the server."""
