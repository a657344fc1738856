"""WebSocket client wrapper for the Screeps console stream."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from .errors import ScreepsConnectionError, ScreepsHandshakeError, ScreepsTimeout

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class ScreepsWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class ScreepsWsMessage:
    """Normalized WebSocket message payload."""

    type: ScreepsWsMessageType
    data: str | None = None


class ScreepsWsClient:
    """Wrapper around websockets library for the Screeps console stream."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = None,
        timeout: float = 15.0,
    ) -> None:
        """Open the raw socket behind a SockJS transport URL.

        Keepalive pings are off by default; the server's SockJS heartbeats
        are accepted but not used for liveness.

        Raises:
            ScreepsTimeout: Connect did not finish within ``timeout``
            ScreepsHandshakeError: Bad URL or rejected upgrade
            ScreepsConnectionError: Network failure
        """
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    ping_interval=ping_interval,
                    close_timeout=5,
                    max_size=None,
                ),
                timeout=timeout,
            )
        except TimeoutError as err:
            raise ScreepsTimeout("WebSocket connection timed out") from err
        except (InvalidHandshake, InvalidURI) as err:
            raise ScreepsHandshakeError(f"WebSocket handshake failed: {url}") from err
        except (OSError, WebSocketException) as err:
            raise ScreepsConnectionError("WebSocket connection failed") from err

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_text(self, data: str) -> None:
        """Send one text frame.

        Raises:
            ScreepsConnectionError: If not connected or the socket is closed
        """
        if self._ws is None:
            raise ScreepsConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(data)
        except ConnectionClosed as err:
            raise ScreepsConnectionError("WebSocket closed while sending") from err

    def __aiter__(self) -> AsyncIterator[ScreepsWsMessage]:
        if self._ws is None:
            raise ScreepsConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[ScreepsWsMessage]:
        if self._ws is None:
            raise ScreepsConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield ScreepsWsMessage(type=ScreepsWsMessageType.CLOSED)
        except Exception as err:
            yield ScreepsWsMessage(type=ScreepsWsMessageType.ERROR, data=str(err))
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield ScreepsWsMessage(type=ScreepsWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> ScreepsWsMessage | None:
        """Normalize frames into ScreepsWsMessage; the stream is text only."""
        if isinstance(msg, bytes):
            return None
        return ScreepsWsMessage(ScreepsWsMessageType.TEXT, str(msg))
