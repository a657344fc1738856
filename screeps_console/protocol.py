"""SockJS framing and inner message helpers for the Screeps console stream.

The server speaks a SockJS-style text protocol over a raw WebSocket:

- ``o``          open acknowledgement
- ``h``          heartbeat
- ``a[...]``     JSON array of inner messages
- ``c[code,""]`` close notice

Inner messages are either plain strings (``"auth ok <token>"``,
``"time 1234"``) or a JSON encoded ``[channel, payload]`` pair.
"""

from __future__ import annotations

import json
import random
import string
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ScreepsDecodeError

CONSOLE_CHANNEL_SUFFIX = "/console"

_SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits
_SESSION_ID_LENGTH = 8
_MAX_SERVER_ID = 1000


class SockJsFrameType(Enum):
    """Frame kinds recognized by the codec."""

    OPEN = "o"
    HEARTBEAT = "h"
    ARRAY = "a"
    CLOSE = "c"
    UNKNOWN = "?"


@dataclass(frozen=True)
class SockJsFrame:
    """Decoded SockJS frame."""

    type: SockJsFrameType
    messages: list[Any] = field(default_factory=list)
    close_code: int | None = None
    close_reason: str | None = None


class InnerMessageKind(Enum):
    """Inner message kinds carried inside array frames."""

    AUTH_OK = "auth_ok"
    AUTH_FAILED = "auth_failed"
    TIME = "time"
    CHANNEL = "channel"
    OTHER = "other"


@dataclass(frozen=True)
class InnerMessage:
    """Parsed inner message."""

    kind: InnerMessageKind
    token: str | None = None
    channel: str | None = None
    payload: Any = None

    @property
    def is_console(self) -> bool:
        """Return True for pushes on a user console channel."""
        return (
            self.kind is InnerMessageKind.CHANNEL
            and self.channel is not None
            and self.channel.endswith(CONSOLE_CHANNEL_SUFFIX)
        )


def encode_messages(messages: Sequence[str]) -> str:
    """Serialize outbound messages as one JSON array text frame."""
    return json.dumps(list(messages))


def build_array_frame(messages: Sequence[str]) -> str:
    """Build a server-direction ``a`` frame carrying ``messages``."""
    return "a" + encode_messages(messages)


def decode_frame(raw: str) -> SockJsFrame:
    """Classify a raw text frame by its leading marker.

    Raises:
        ScreepsDecodeError: If an array frame does not carry a JSON array.
    """
    if raw.startswith("o"):
        return SockJsFrame(SockJsFrameType.OPEN)
    if raw.startswith("h"):
        return SockJsFrame(SockJsFrameType.HEARTBEAT)
    if raw.startswith("a"):
        try:
            messages = json.loads(raw[1:])
        except ValueError as err:
            raise ScreepsDecodeError(f"Malformed array frame: {err}") from err
        if not isinstance(messages, list):
            raise ScreepsDecodeError("Array frame does not contain a JSON array")
        return SockJsFrame(SockJsFrameType.ARRAY, messages)
    if raw.startswith("c"):
        return _decode_close_frame(raw)
    return SockJsFrame(SockJsFrameType.UNKNOWN)


def _decode_close_frame(raw: str) -> SockJsFrame:
    # Close notices are informational only; a bad body is not worth failing over.
    try:
        body = json.loads(raw[1:])
    except ValueError:
        return SockJsFrame(SockJsFrameType.CLOSE)
    if isinstance(body, list) and len(body) == 2:
        code, reason = body
        return SockJsFrame(
            SockJsFrameType.CLOSE,
            close_code=code if isinstance(code, int) else None,
            close_reason=str(reason),
        )
    return SockJsFrame(SockJsFrameType.CLOSE)


def parse_inner_message(raw: Any) -> InnerMessage:
    """Parse one inner message from a decoded array frame.

    Raises:
        ScreepsDecodeError: If a channel message is not a ``[channel, payload]``
            JSON pair.
    """
    if not isinstance(raw, str):
        return InnerMessage(InnerMessageKind.OTHER)

    if raw.startswith("auth ok"):
        parts = raw.split(" ")
        token = parts[2] if len(parts) > 2 and parts[2] else None
        return InnerMessage(InnerMessageKind.AUTH_OK, token=token)
    if raw.startswith("auth failed"):
        return InnerMessage(InnerMessageKind.AUTH_FAILED)
    if raw.startswith("time"):
        return InnerMessage(InnerMessageKind.TIME)
    if raw.startswith("["):
        try:
            decoded = json.loads(raw)
        except ValueError as err:
            raise ScreepsDecodeError(f"Malformed channel message: {err}") from err
        if (
            not isinstance(decoded, list)
            or len(decoded) != 2
            or not isinstance(decoded[0], str)
        ):
            raise ScreepsDecodeError("Channel message is not a [channel, payload] pair")
        channel, payload = decoded
        return InnerMessage(InnerMessageKind.CHANNEL, channel=channel, payload=payload)
    return InnerMessage(InnerMessageKind.OTHER)


def build_auth_message(token: str) -> str:
    """Construct the in-band authentication command."""
    return f"auth {token}"


def build_subscribe_message(user_id: str) -> str:
    """Construct the console channel subscription command."""
    return f"subscribe user:{user_id}{CONSOLE_CHANNEL_SUFFIX}"


def build_socket_url(
    host: str,
    *,
    server_id: int | None = None,
    session_id: str | None = None,
) -> str:
    """Build a raw WebSocket URL mimicking a SockJS transport endpoint.

    Server and session ids are random per call unless given.
    """
    if server_id is None:
        server_id = random.randrange(_MAX_SERVER_ID)
    if session_id is None:
        session_id = "".join(
            random.choices(_SESSION_ID_ALPHABET, k=_SESSION_ID_LENGTH)
        )
    return f"wss://{host}/socket/{server_id}/{session_id}/websocket"
