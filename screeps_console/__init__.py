"""Screeps console client: SockJS stream, auth handshake and console commands."""

__version__ = "0.1.0"

from .console import DEFAULT_SHARD, ConsoleChannelHandler
from .errors import (
    ScreepsAuthError,
    ScreepsClientError,
    ScreepsCommandSendError,
    ScreepsConnectionError,
    ScreepsDecodeError,
    ScreepsHandshakeError,
    ScreepsResponseError,
    ScreepsTimeout,
    ScreepsTransportError,
)
from .events import ConnectionStatus, EventEmitter, EventType
from .http import ScreepsAuthResult, ScreepsCommandResult, ScreepsHttpClient
from .protocol import (
    InnerMessage,
    InnerMessageKind,
    SockJsFrame,
    SockJsFrameType,
    build_array_frame,
    build_auth_message,
    build_socket_url,
    build_subscribe_message,
    decode_frame,
    encode_messages,
    parse_inner_message,
)
from .session import ConnectionState, ScreepsConsoleSession
from .ws_client import ScreepsWsClient, ScreepsWsMessage, ScreepsWsMessageType

__all__ = [
    "DEFAULT_SHARD",
    "ConnectionState",
    "ConnectionStatus",
    "ConsoleChannelHandler",
    "EventEmitter",
    "EventType",
    "InnerMessage",
    "InnerMessageKind",
    "ScreepsAuthError",
    "ScreepsAuthResult",
    "ScreepsClientError",
    "ScreepsCommandResult",
    "ScreepsCommandSendError",
    "ScreepsConnectionError",
    "ScreepsConsoleSession",
    "ScreepsDecodeError",
    "ScreepsHandshakeError",
    "ScreepsHttpClient",
    "ScreepsResponseError",
    "ScreepsTimeout",
    "ScreepsTransportError",
    "ScreepsWsClient",
    "ScreepsWsMessage",
    "ScreepsWsMessageType",
    "SockJsFrame",
    "SockJsFrameType",
    "__version__",
    "build_array_frame",
    "build_auth_message",
    "build_socket_url",
    "build_subscribe_message",
    "decode_frame",
    "encode_messages",
    "parse_inner_message",
]
