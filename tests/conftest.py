"""Pytest configuration and fixtures for screeps_console tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from screeps_console.ws_client import ScreepsWsMessage, ScreepsWsMessageType


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    headers: dict[str, str] | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        headers: Response headers

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.headers = headers or {}
    response.json.return_value = json_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout=timeout)


class FakeWsClient:
    """Scripted stand-in for ScreepsWsClient.

    Frames pushed with feed() are delivered to the session listener in order.
    """

    def __init__(self, calls: list[Any] | None = None) -> None:
        self.calls = calls if calls is not None else []
        self.sent: list[str] = []
        self.connect = AsyncMock()
        self.close_count = 0
        self._queue: asyncio.Queue[ScreepsWsMessage | None] = asyncio.Queue()

    async def close(self) -> None:
        self.close_count += 1
        self._queue.put_nowait(None)

    async def send_text(self, data: str) -> None:
        self.sent.append(data)
        self.calls.append(("send", data))

    def feed(self, raw: str) -> None:
        self._queue.put_nowait(ScreepsWsMessage(ScreepsWsMessageType.TEXT, raw))

    def server_close(self) -> None:
        self._queue.put_nowait(ScreepsWsMessage(ScreepsWsMessageType.CLOSED))
        self._queue.put_nowait(None)

    def fail(self, reason: str) -> None:
        self._queue.put_nowait(ScreepsWsMessage(ScreepsWsMessageType.ERROR, reason))
        self._queue.put_nowait(None)

    async def wait_for_sent(self, count: int) -> None:
        await wait_until(lambda: len(self.sent) >= count)

    def __aiter__(self):
        return self._iter_messages()

    async def _iter_messages(self):
        while True:
            msg = await self._queue.get()
            if msg is None:
                return
            yield msg


@pytest.fixture
def fake_ws() -> FakeWsClient:
    """Create a scripted fake WebSocket client."""
    return FakeWsClient()
