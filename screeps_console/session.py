"""High-level session for the Screeps console stream.

This module ties the pieces together. It handles:
- HTTP authentication and token rotation
- The WebSocket lifecycle and in-band auth handshake
- Console channel subscription and payload routing
- Console command submission

Reconnecting after a server or network close is left to the caller: the
session reports the disconnect and stops.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from enum import Enum
from types import TracebackType
from typing import Any

import aiohttp

from .console import DEFAULT_SHARD, ConsoleChannelHandler
from .errors import (
    ScreepsAuthError,
    ScreepsClientError,
    ScreepsConnectionError,
    ScreepsDecodeError,
)
from .events import ConnectionStatus, EventEmitter, EventType, Listener
from .http import DEFAULT_HOST, ScreepsHttpClient
from .protocol import (
    InnerMessage,
    InnerMessageKind,
    SockJsFrameType,
    build_auth_message,
    build_socket_url,
    build_subscribe_message,
    decode_frame,
    encode_messages,
    parse_inner_message,
)
from .ws_client import ScreepsWsClient, ScreepsWsMessageType

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Stream lifecycle states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    HANDSHAKE_PENDING = "handshake_pending"
    CONNECTED = "connected"
    CLOSED = "closed"


class ScreepsConsoleSession:
    """Console client for one Screeps account.

    Usage:
        session = ScreepsConsoleSession(token="...")
        session.on(EventType.CONSOLE, print)
        session.on_token_changed(store_token)
        await session.connect()
        await session.send_command("Game.time")
        await session.close()
    """

    def __init__(
        self,
        token: str,
        *,
        host: str = DEFAULT_HOST,
        default_shard: str = DEFAULT_SHARD,
        http_session: aiohttp.ClientSession | None = None,
        connect_timeout: float = 15.0,
        http_timeout: float = 10.0,
        ping_interval: int | None = None,
    ) -> None:
        """Initialize session.

        Args:
            token: Screeps auth token
            host: Server hostname
            default_shard: Shard targeted until the server reports one
            http_session: aiohttp session to use; one is created when omitted
            connect_timeout: WebSocket connect timeout (seconds)
            http_timeout: HTTP request timeout (seconds)
            ping_interval: WebSocket ping interval, None disables pings
        """
        self.host = host
        self._token = token
        self._user_id: str | None = None

        self._http_session = http_session
        self._owns_http_session = http_session is None
        self._http: ScreepsHttpClient | None = None
        self._http_timeout = http_timeout
        self._connect_timeout = connect_timeout
        self._ping_interval = ping_interval

        self._events = EventEmitter()
        self._console = ConsoleChannelHandler(
            self._emit_console, default_shard=default_shard
        )

        # Connection state
        self._ws: ScreepsWsClient | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._state = ConnectionState.IDLE
        self._pending_connect: asyncio.Future[bool] | None = None
        self._closing_intentionally = False
        self._last_status: ConnectionStatus | None = None

    async def __aenter__(self) -> ScreepsConsoleSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public API: State
    # -------------------------------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the stream is authenticated."""
        return self._state is ConnectionState.CONNECTED

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def token(self) -> str:
        return self._token

    def set_token(self, token: str) -> None:
        """Replace the token without notifying token listeners."""
        self._token = token

    @property
    def active_shard(self) -> str:
        return self._console.active_shard

    def set_active_shard(self, shard: str) -> None:
        """Target ``shard`` with subsequent commands."""
        self._console.set_active_shard(shard)

    # -------------------------------------------------------------------------
    # Public API: Events
    # -------------------------------------------------------------------------

    def on(self, event: EventType, callback: Listener) -> Callable[[], None]:
        """Register an event listener; returns a callable removing it."""
        return self._events.on(event, callback)

    def on_token_changed(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register callback receiving every rotated token."""
        return self._events.on(EventType.TOKEN, callback)

    # -------------------------------------------------------------------------
    # Public API: Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> str:
        """Resolve the user id for the current token.

        Raises:
            ScreepsAuthError: Token rejected or no user id returned
            ScreepsClientError: HTTP transport failure
        """
        self._emit_log("Authenticating...")
        result = await self._get_http().fetch_identity(self._token)
        self._update_token(result.token)
        self._user_id = result.user_id
        _LOGGER.info("[%s] Authenticated as %s", self.host, self._user_id)
        self._emit_log(f"Authenticated as user ID: {self._user_id}")
        return self._user_id

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Open the console stream and wait for the in-band handshake.

        A call made while another connect is pending joins that attempt.

        Returns:
            True once authenticated on the stream, False if disconnect()
            was called first

        Raises:
            ScreepsAuthError: HTTP or in-band authentication rejected
            ScreepsTransportError: Socket failure before the handshake completed
        """
        if self._pending_connect is not None:
            _LOGGER.debug("[%s] Connect already in progress", self.host)
            return await asyncio.shield(self._pending_connect)

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending_connect = future
        self._emit_status(ConnectionStatus.CONNECTING)

        try:
            if self._user_id is None:
                await self.authenticate()
            if self._pending_connect is future:
                await self._open_stream(future)
        except asyncio.CancelledError:
            if self._pending_connect is future:
                self._resolve_pending(False)
                self._emit_status(ConnectionStatus.DISCONNECTED)
            raise
        except ScreepsClientError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.host, err)
            self._emit_error(f"Connection failed: {err}")
            if self._pending_connect is future:
                self._emit_status(ConnectionStatus.DISCONNECTED)
            self._reject_pending(err, future)

        return await asyncio.shield(future)

    async def disconnect(self) -> None:
        """Close the stream without reporting it as a failure.

        Safe to call in any state.
        """
        _LOGGER.info("[%s] Disconnecting", self.host)
        self._closing_intentionally = True
        await self._teardown_transport()
        self._resolve_pending(False)
        self._emit_status(ConnectionStatus.DISCONNECTED)

    async def close(self) -> None:
        """Disconnect and release the HTTP session if this client created it."""
        await self.disconnect()
        if self._owns_http_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._http = None

    # -------------------------------------------------------------------------
    # Public API: Commands
    # -------------------------------------------------------------------------

    async def send_command(self, expression: str) -> bool:
        """Submit ``expression`` to the active shard's console.

        The evaluation result arrives later as a console event.

        Returns:
            True if the server accepted the request, False otherwise
        """
        if self._user_id is None:
            self._emit_error("Cannot send command: Not authenticated.")
            return False

        shard = self.active_shard
        try:
            result = await self._get_http().send_console_command(
                self._token, expression, shard
            )
        except ScreepsClientError as err:
            _LOGGER.warning("[%s] Command failed: %s", self.host, err)
            self._emit_error(f"Command failed: {err}")
            return False

        self._update_token(result.token)
        _LOGGER.debug("[%s] Command sent to %s", self.host, shard)
        return True

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if self._state is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.host, self._state.value, state.value
            )
            self._state = state

    def _get_http(self) -> ScreepsHttpClient:
        if self._http is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._http = ScreepsHttpClient(
                self._http_session, self.host, timeout=self._http_timeout
            )
        return self._http

    async def _open_stream(self, future: asyncio.Future[bool]) -> None:
        await self._teardown_transport()
        self._closing_intentionally = False

        url = build_socket_url(self.host)
        _LOGGER.info("[%s] Connecting to %s", self.host, url)
        self._emit_log(f"Connecting to WebSocket: {url}")
        self._set_state(ConnectionState.CONNECTING)

        ws_client = ScreepsWsClient()
        await ws_client.connect(
            url, ping_interval=self._ping_interval, timeout=self._connect_timeout
        )

        if self._pending_connect is not future:
            # disconnect() ran while the socket was opening
            await ws_client.close()
            return

        self._ws = ws_client
        self._emit_log("WebSocket connected.")
        self._listen_task = asyncio.create_task(self._listen(ws_client))

    async def _teardown_transport(self) -> None:
        """Stop the listener and close the socket without emitting events."""
        task, self._listen_task = self._listen_task, None
        ws_client, self._ws = self._ws, None
        previous = self._closing_intentionally
        self._closing_intentionally = True

        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        if ws_client is not None:
            try:
                await asyncio.wait_for(ws_client.close(), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] WebSocket close timed out", self.host)
            self._set_state(ConnectionState.CLOSED)

        self._closing_intentionally = previous

    def _resolve_pending(self, connected: bool) -> None:
        future, self._pending_connect = self._pending_connect, None
        if future is not None and not future.done():
            future.set_result(connected)

    def _reject_pending(
        self, err: Exception, future: asyncio.Future[bool] | None = None
    ) -> bool:
        """Fail a pending connect. Returns True if a waiter was rejected."""
        if future is None:
            future = self._pending_connect
        if future is None:
            return False
        if self._pending_connect is future:
            self._pending_connect = None
        if future.done():
            return False
        future.set_exception(err)
        return True

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws_client: ScreepsWsClient) -> None:
        """Authenticate on the stream and pump frames until it closes."""
        failed = False
        try:
            await self._send_auth(ws_client)

            async for msg in ws_client:
                if msg.type == ScreepsWsMessageType.TEXT and msg.data is not None:
                    await self._handle_frame(ws_client, msg.data)
                elif msg.type == ScreepsWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by server", self.host)
                elif msg.type == ScreepsWsMessageType.ERROR:
                    failed = True
                    self._on_transport_error(
                        ScreepsConnectionError(msg.data or "WebSocket error")
                    )

        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Listener cancelled", self.host)
            raise
        except ScreepsClientError as err:
            failed = True
            self._on_transport_error(err)
        except Exception as err:
            failed = True
            _LOGGER.exception("[%s] Unexpected listener error: %s", self.host, err)
            self._on_transport_error(ScreepsConnectionError(str(err)))
        finally:
            try:
                if failed:
                    await self._release_socket(ws_client)
            finally:
                self._on_transport_closed()

    async def _release_socket(self, ws_client: ScreepsWsClient) -> None:
        """Close a socket whose listener has stopped and forget it."""
        if self._ws is ws_client:
            self._ws = None
            self._listen_task = None
        try:
            await asyncio.wait_for(ws_client.close(), timeout=2.0)
        except (TimeoutError, OSError, ScreepsClientError) as err:
            _LOGGER.warning("[%s] WebSocket close failed: %s", self.host, err)

    def _on_transport_error(self, err: ScreepsClientError) -> None:
        _LOGGER.error("[%s] WebSocket error: %s", self.host, err)
        self._emit_error(f"WebSocket error: {err}")
        if self._reject_pending(err):
            self._emit_status(ConnectionStatus.DISCONNECTED)

    def _on_transport_closed(self) -> None:
        was_connected = self._state is ConnectionState.CONNECTED
        self._set_state(ConnectionState.CLOSED)

        if self._closing_intentionally:
            return

        rejected = self._reject_pending(
            ScreepsConnectionError("WebSocket closed before authentication completed")
        )
        self._emit_log("WebSocket disconnected.")
        if was_connected or rejected:
            self._emit_status(ConnectionStatus.DISCONNECTED)

    async def _send_messages(self, ws_client: ScreepsWsClient, *messages: str) -> None:
        await ws_client.send_text(encode_messages(messages))

    async def _send_auth(self, ws_client: ScreepsWsClient) -> None:
        await self._send_messages(ws_client, build_auth_message(self._token))
        self._set_state(ConnectionState.HANDSHAKE_PENDING)
        _LOGGER.debug("[%s] Auth sent", self.host)

    async def _subscribe_console(self, ws_client: ScreepsWsClient) -> None:
        if self._user_id is None:
            _LOGGER.warning("[%s] Cannot subscribe: no user id", self.host)
            return
        await self._send_messages(ws_client, build_subscribe_message(self._user_id))
        self._emit_log("Subscribed to console.")

    # -------------------------------------------------------------------------
    # Internal: Protocol Handlers
    # -------------------------------------------------------------------------

    async def _handle_frame(self, ws_client: ScreepsWsClient, raw: str) -> None:
        try:
            frame = decode_frame(raw)
        except ScreepsDecodeError as err:
            _LOGGER.warning("[%s] Dropped frame: %s", self.host, err)
            return

        if frame.type is SockJsFrameType.ARRAY:
            for message in frame.messages:
                await self._dispatch_inner_message(ws_client, message)
        elif frame.type is SockJsFrameType.CLOSE:
            _LOGGER.info(
                "[%s] Server close notice: %s %s",
                self.host,
                frame.close_code,
                frame.close_reason,
            )

    async def _dispatch_inner_message(
        self, ws_client: ScreepsWsClient, raw: Any
    ) -> None:
        try:
            message = parse_inner_message(raw)
        except ScreepsDecodeError as err:
            _LOGGER.debug("[%s] Dropped inner message: %s", self.host, err)
            return

        if message.kind is InnerMessageKind.AUTH_OK:
            await self._handle_auth_ok(ws_client, message)
        elif message.kind is InnerMessageKind.AUTH_FAILED:
            self._handle_auth_failed()
        elif message.is_console:
            try:
                self._console.handle_payload(message.payload)
            except ScreepsDecodeError as err:
                _LOGGER.debug("[%s] Dropped console payload: %s", self.host, err)

    async def _handle_auth_ok(
        self, ws_client: ScreepsWsClient, message: InnerMessage
    ) -> None:
        self._set_state(ConnectionState.CONNECTED)
        self._update_token(message.token)
        _LOGGER.info("[%s] Stream authenticated", self.host)
        self._emit_log("WebSocket Authentication successful.")
        await self._subscribe_console(ws_client)
        self._resolve_pending(True)
        self._emit_status(ConnectionStatus.CONNECTED)

    def _handle_auth_failed(self) -> None:
        _LOGGER.error("[%s] Stream authentication rejected", self.host)
        self._emit_error("WebSocket Authentication failed.")
        self._emit_status(ConnectionStatus.DISCONNECTED)
        self._reject_pending(ScreepsAuthError("WebSocket authentication failed"))

    # -------------------------------------------------------------------------
    # Internal: Events
    # -------------------------------------------------------------------------

    def _update_token(self, token: str | None) -> None:
        if not token or token == self._token:
            return
        self._token = token
        _LOGGER.debug("[%s] Token rotated", self.host)
        self._events.emit(EventType.TOKEN, token)

    def _emit_log(self, text: str) -> None:
        self._events.emit(EventType.LOG, text)

    def _emit_error(self, text: str) -> None:
        self._events.emit(EventType.ERROR, text)

    def _emit_console(self, text: str) -> None:
        self._events.emit(EventType.CONSOLE, text)

    def _emit_status(self, status: ConnectionStatus) -> None:
        if status is self._last_status:
            return
        self._last_status = status
        self._events.emit(EventType.STATUS, {"state": status.value})
