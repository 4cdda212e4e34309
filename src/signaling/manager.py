"""Resilient signaling connection manager.

Owns one transport at a time for a single session/room, reconnects with
capped exponential backoff, keeps the channel alive with heartbeats, and
routes inbound frames to handlers by type tag.

Everything runs on one asyncio event loop. Timers are ``loop.call_later``
handles and the public operations (``send``, ``on_message``, ``close``) are
synchronous; outcomes are observed through the error sink and handlers.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from src.signaling.config import ConnectionConfig, EndpointConfig
from src.signaling.dispatch import HandlerRegistry, MessageHandler
from src.signaling.endpoint import EndpointResolver, OriginEndpoint, StaticEndpoint
from src.signaling.errors import (
    FrameDecodeError,
    HandlerError,
    HeartbeatError,
    ReconnectExhaustedError,
    SendError,
    ServerReportedError,
    TransportSetupError,
    UnexpectedCloseError,
)
from src.signaling.protocol import (
    JoinMessage,
    PingMessage,
    ServerErrorFrame,
    UnrecognizedFrame,
    decode_frame,
    encode_frame,
)
from src.signaling.retry import RetryState
from src.signaling.transport import Connector, SignalingTransport, websocket_connector

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception], None]
StateObserver = Callable[["ConnectionState", "ConnectionState"], None]


class ConnectionState(Enum):
    """Connection state machine states.

    State Transitions:
    - IDLE → CONNECTING (on construction)
    - CONNECTING → OPEN (transport opened)
    - CONNECTING → RECONNECTING (setup error or connection timeout)
    - OPEN → RECONNECTING (transport closed or found dead on send)
    - RECONNECTING → CONNECTING (retry timer fired)
    - RECONNECTING → FAILED (retry budget exhausted)
    - * → CLOSING → CLOSED (explicit close())
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.IDLE: {ConnectionState.CONNECTING, ConnectionState.CLOSING},
    ConnectionState.CONNECTING: {
        ConnectionState.OPEN,
        ConnectionState.RECONNECTING,
        ConnectionState.CLOSING,
    },
    ConnectionState.OPEN: {ConnectionState.RECONNECTING, ConnectionState.CLOSING},
    ConnectionState.RECONNECTING: {
        ConnectionState.CONNECTING,
        ConnectionState.FAILED,
        ConnectionState.CLOSING,
    },
    ConnectionState.FAILED: {ConnectionState.CLOSING},
    ConnectionState.CLOSING: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),  # Terminal state
}

# States in which no further lifecycle work is accepted
_TERMINAL_STATES = frozenset(
    {ConnectionState.CLOSING, ConnectionState.CLOSED, ConnectionState.FAILED}
)

OutboundMessage = BaseModel | Mapping[str, Any]


class ConnectionManager:
    """Single logical signaling channel over an unreliable websocket.

    Connection attempts start immediately on construction, so the manager
    must be created from a running event loop.

    Example:
        ```python
        manager = ConnectionManager("room-42", on_error=print)
        manager.on_message("chat", lambda payload: print(payload["text"]))
        manager.send({"type": "chat", "text": "hi"})
        manager.close()
        await manager.wait_closed()
        ```
    """

    def __init__(
        self,
        session_id: str,
        on_error: ErrorSink | None = None,
        *,
        endpoint: EndpointResolver | str | None = None,
        config: ConnectionConfig | None = None,
        connector: Connector | None = None,
        on_state_change: StateObserver | None = None,
    ) -> None:
        """Initialize the manager and start connecting.

        Args:
            session_id: Session/room identifier announced on every open
            on_error: Error sink for non-fatal and terminal errors
            endpoint: URL or zero-argument resolver called per attempt
                (default: derived from the default origin and path)
            config: Connection tunables (default: ConnectionConfig())
            connector: Async callable opening a transport for a URL
            on_state_change: Observer called with (old, new) on each transition

        Raises:
            ValueError: If session_id is empty
            RuntimeError: If no event loop is running
        """
        if not session_id:
            raise ValueError("session_id must be a non-empty string")

        self._session_id = session_id
        self._on_error = on_error
        self._on_state_change = on_state_change
        self._config = config or ConnectionConfig()
        self._connector: Connector = connector or websocket_connector

        if endpoint is None:
            defaults = EndpointConfig()
            endpoint = OriginEndpoint(defaults.origin, defaults.path)
        elif isinstance(endpoint, str):
            endpoint = StaticEndpoint(endpoint)
        self._resolve_endpoint: EndpointResolver = endpoint

        self._loop = asyncio.get_running_loop()
        self._state = ConnectionState.IDLE
        self._retry = RetryState.from_config(self._config)
        self._handlers = HandlerRegistry()

        # Bumped on every attempt, failure and close; events tagged with an
        # older generation are ignored.
        self._generation = 0

        self._transport: SignalingTransport | None = None
        self._outbox: asyncio.Queue[tuple[str, bool]] | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None

        self._connect_timeout: asyncio.TimerHandle | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._heartbeat_timer: asyncio.TimerHandle | None = None

        self._background: set[asyncio.Task[None]] = set()
        self._closed_event = asyncio.Event()

        logger.info(
            "Initializing signaling connection",
            extra={"session_id": session_id, "endpoint": repr(self._resolve_endpoint)},
        )
        self._connect()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_state(self) -> RetryState:
        return self._retry

    @property
    def is_open(self) -> bool:
        """Check if frames can currently be sent."""
        return self._state is ConnectionState.OPEN and self._transport_is_open()

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat_timer is not None

    def send(self, message: OutboundMessage) -> None:
        """Send a message if the channel is open; otherwise drop it.

        Nothing is buffered. A send while disconnected is treated as a hint
        that reconnection may be needed.

        Args:
            message: Pydantic model or mapping with a string ``type``
        """
        if not self.is_open:
            logger.warning(
                "Cannot send message - not connected",
                extra={"session_id": self._session_id, "state": self._state.value},
            )
            self._on_send_while_disconnected()
            return

        self._transmit(message)

    def on_message(self, message_type: str, handler: MessageHandler) -> None:
        """Register or replace the handler for a message type.

        Args:
            message_type: Type tag to route
            handler: Callback invoked synchronously with the full payload
        """
        if self._state is ConnectionState.CLOSED:
            logger.debug(
                "Ignoring handler registration after close",
                extra={"session_id": self._session_id, "message_type": message_type},
            )
            return
        self._handlers.register(message_type, handler)

    def close(self) -> None:
        """Tear down the channel. Idempotent and safe from any state.

        Cancels all timers, disables automatic reconnection, closes the
        transport with a normal-closure code, and clears all handlers.
        """
        if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        logger.info("Closing signaling connection", extra={"session_id": self._session_id})
        self._transition(ConnectionState.CLOSING)

        self._retry.exhaust()
        self._generation += 1
        self._cancel_reconnect_timer()
        self._stop_heartbeat()
        self._cancel_connect_attempt()

        transport = self._detach_transport()
        self._handlers.clear()

        if transport is not None:
            task = self._loop.create_task(
                self._close_transport(
                    transport, self._config.close_code, self._config.close_reason
                )
            )
            task.add_done_callback(lambda _: self._closed_event.set())
            self._track(task)
        else:
            self._closed_event.set()

        self._transition(ConnectionState.CLOSED)

    async def wait_closed(self) -> None:
        """Wait until close() has finished closing the transport."""
        await self._closed_event.wait()

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        if self._state is ConnectionState.OPEN:
            logger.debug("Already connected", extra={"session_id": self._session_id})
            return
        if self._state in _TERMINAL_STATES:
            return

        self._detach_transport()
        self._generation += 1
        generation = self._generation
        self._transition(ConnectionState.CONNECTING)
        if self._state is not ConnectionState.CONNECTING:
            return

        try:
            url = self._resolve_endpoint()
        except Exception as e:
            logger.error(f"Endpoint resolution failed: {e}")
            self._report_error(TransportSetupError(f"Endpoint resolution failed: {e}"))
            self._handle_failure(generation)
            return

        logger.info(
            f"Connecting to {url} (attempt {self._retry.attempt_count + 1})",
            extra={"session_id": self._session_id, "url": url},
        )

        self._connect_task = self._loop.create_task(self._open_transport(url, generation))
        self._connect_timeout = self._loop.call_later(
            self._config.connect_timeout_ms / 1000.0,
            self._on_connect_timeout,
            generation,
        )

    async def _open_transport(self, url: str, generation: int) -> None:
        try:
            transport = await self._connector(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                return
            logger.error(f"Connection setup failed: {e}", extra={"session_id": self._session_id})
            self._report_error(TransportSetupError(f"Failed to connect to {url}: {e}"))
            self._handle_failure(generation)
            return

        if generation != self._generation or self._state is not ConnectionState.CONNECTING:
            # Superseded while opening (timeout or close); release it
            await self._close_transport(transport, self._config.close_code, "superseded")
            return

        self._on_open(transport)

    def _on_open(self, transport: SignalingTransport) -> None:
        self._cancel_connect_timeout()
        self._connect_task = None
        self._transport = transport
        self._retry.reset()

        generation = self._generation
        self._outbox = asyncio.Queue()
        self._writer_task = self._loop.create_task(
            self._write_loop(transport, self._outbox, generation)
        )
        self._reader_task = self._loop.create_task(self._read_loop(transport, generation))

        # Join goes into the fresh outbox before any observer can send
        self._enqueue(JoinMessage(session_id=self._session_id))
        self._transition(ConnectionState.OPEN)
        if self._state is not ConnectionState.OPEN:
            # Observer closed the manager during the transition
            return

        self._start_heartbeat()
        logger.info("Connected successfully", extra={"session_id": self._session_id})

    def _on_connect_timeout(self, generation: int) -> None:
        self._connect_timeout = None
        if generation != self._generation or self._state is not ConnectionState.CONNECTING:
            return

        logger.warning("Connection timeout", extra={"session_id": self._session_id})
        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None
        self._report_error(
            TransportSetupError(
                f"Connection not established within {self._config.connect_timeout_ms}ms"
            )
        )
        self._handle_failure(generation)

    def _on_transport_closed(
        self, transport: SignalingTransport, generation: int, error: Exception | None
    ) -> None:
        if generation != self._generation or self._state is not ConnectionState.OPEN:
            return

        code = getattr(transport, "close_code", None)
        reason = getattr(transport, "close_reason", None) or ""
        logger.info(
            f"Connection closed: {code} {reason}",
            extra={"session_id": self._session_id, "code": code},
        )
        if error is not None:
            self._report_error(
                UnexpectedCloseError(f"Connection lost: {error}", code=code, reason=reason)
            )
        self._handle_failure(generation)

    def _on_send_while_disconnected(self) -> None:
        """Re-evaluate reconnection after a send found no usable transport.

        Never arms a second timer. Once the retry budget is exhausted, the
        terminal error is reported again so the caller learns the message
        went nowhere.
        """
        if self._state is ConnectionState.FAILED:
            self._report_error(ReconnectExhaustedError(self._retry.max_attempts))
            return
        if self._state in _TERMINAL_STATES:
            return
        if self._state is ConnectionState.CONNECTING or self._reconnect_timer is not None:
            logger.debug("Reconnect already in progress", extra={"session_id": self._session_id})
            return
        if self._state is ConnectionState.OPEN:
            # Transport died without delivering a close event
            logger.warning(
                "Transport no longer open, reconnecting",
                extra={"session_id": self._session_id},
            )
            self._handle_failure(self._generation)

    def _handle_failure(self, generation: int) -> None:
        if generation != self._generation or self._state in _TERMINAL_STATES:
            return

        self._generation += 1
        self._stop_heartbeat()
        self._cancel_connect_attempt()
        self._detach_transport()
        self._transition(ConnectionState.RECONNECTING)
        self._schedule_reconnect()

    def _detach_transport(self) -> SignalingTransport | None:
        """Stop the reader/writer and forget the transport.

        A transport that is still open is closed in the background, except
        when returned to close(), which closes it itself.
        """
        transport = self._transport
        self._transport = None
        self._outbox = None

        for task in (self._reader_task, self._writer_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
        self._reader_task = None
        self._writer_task = None

        if transport is not None and self._state is not ConnectionState.CLOSING:
            self._track(
                self._loop.create_task(
                    self._close_transport(transport, self._config.close_code, "reconnecting")
                )
            )
        return transport

    async def _close_transport(
        self, transport: SignalingTransport, code: int, reason: str
    ) -> None:
        try:
            await transport.close(code, reason)
        except Exception as e:
            logger.debug(f"Transport close failed (non-critical): {e}")

    # ------------------------------------------------------------------
    # Retry scheduler
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect_timer()

        if self._retry.can_retry:
            delay_ms = self._retry.advance()
            logger.info(
                f"Attempting reconnection {self._retry.attempt_count}/"
                f"{self._retry.max_attempts} in {delay_ms}ms",
                extra={
                    "session_id": self._session_id,
                    "attempt": self._retry.attempt_count,
                    "delay_ms": delay_ms,
                },
            )
            self._reconnect_timer = self._loop.call_later(
                delay_ms / 1000.0, self._on_reconnect_timer
            )
            return

        logger.error(
            "Max reconnection attempts reached",
            extra={"session_id": self._session_id, "attempts": self._retry.max_attempts},
        )
        self._transition(ConnectionState.FAILED)
        self._report_error(ReconnectExhaustedError(self._retry.max_attempts))

    def _on_reconnect_timer(self) -> None:
        self._reconnect_timer = None
        if self._state is not ConnectionState.RECONNECTING:
            return
        self._connect()

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _cancel_connect_timeout(self) -> None:
        if self._connect_timeout is not None:
            self._connect_timeout.cancel()
            self._connect_timeout = None

    def _cancel_connect_attempt(self) -> None:
        self._cancel_connect_timeout()
        if self._connect_task is not None and self._connect_task is not asyncio.current_task():
            self._connect_task.cancel()
        self._connect_task = None

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._heartbeat_timer = self._loop.call_later(
            self._config.heartbeat_interval_ms / 1000.0, self._on_heartbeat
        )

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_timer is not None:
            self._heartbeat_timer.cancel()
            self._heartbeat_timer = None

    def _on_heartbeat(self) -> None:
        self._heartbeat_timer = None
        if not self.is_open:
            return

        self._transmit(PingMessage(), heartbeat=True)
        self._heartbeat_timer = self._loop.call_later(
            self._config.heartbeat_interval_ms / 1000.0, self._on_heartbeat
        )

    # ------------------------------------------------------------------
    # Outbound path
    # ------------------------------------------------------------------

    def _transmit(self, message: OutboundMessage, heartbeat: bool = False) -> None:
        try:
            self._enqueue(message, heartbeat)
        except (TypeError, ValueError) as e:
            logger.error(f"Send error: {e}", extra={"session_id": self._session_id})
            error_cls = HeartbeatError if heartbeat else SendError
            self._report_error(error_cls(f"Failed to encode message: {e}"))

    def _enqueue(self, message: OutboundMessage, heartbeat: bool = False) -> None:
        frame = encode_frame(message)
        if self._outbox is None:
            return
        self._outbox.put_nowait((frame, heartbeat))

    async def _write_loop(
        self,
        transport: SignalingTransport,
        outbox: asyncio.Queue[tuple[str, bool]],
        generation: int,
    ) -> None:
        while True:
            frame, heartbeat = await outbox.get()
            try:
                await transport.send(frame)
                logger.debug("Sent frame", extra={"session_id": self._session_id, "size": len(frame)})
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if generation != self._generation:
                    return
                if heartbeat:
                    logger.error(f"Ping error: {e}", extra={"session_id": self._session_id})
                    self._report_error(HeartbeatError(f"Heartbeat failed: {e}"))
                else:
                    logger.error(f"Send error: {e}", extra={"session_id": self._session_id})
                    self._report_error(SendError(f"Failed to send message: {e}"))

    # ------------------------------------------------------------------
    # Inbound path
    # ------------------------------------------------------------------

    async def _read_loop(self, transport: SignalingTransport, generation: int) -> None:
        error: Exception | None = None
        try:
            async for raw in transport:
                if generation != self._generation:
                    return
                self._handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            error = e
        except Exception as e:
            logger.error(f"Error receiving frames: {e}", extra={"session_id": self._session_id})
            error = e

        self._on_transport_closed(transport, generation, error)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = decode_frame(raw)
        except FrameDecodeError as e:
            logger.error(f"Error processing message: {e}", extra={"session_id": self._session_id})
            self._report_error(e)
            return

        if isinstance(frame, ServerErrorFrame):
            logger.error(f"Server error: {frame.error}", extra={"session_id": self._session_id})
            self._report_error(ServerReportedError(frame.error, payload=frame.payload))
            return

        if isinstance(frame, UnrecognizedFrame):
            logger.debug("Discarding frame without type", extra={"session_id": self._session_id})
            return

        try:
            self._handlers.dispatch(frame)
        except Exception as e:
            logger.error(
                f"Handler for '{frame.type}' failed: {e}",
                extra={"session_id": self._session_id},
            )
            self._report_error(HandlerError(frame.type, e))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, new_state: ConnectionState) -> bool:
        old_state = self._state
        if new_state is old_state:
            return True
        if new_state not in VALID_TRANSITIONS[old_state]:
            logger.warning(
                f"Invalid state transition: {old_state.value} → {new_state.value}",
                extra={"session_id": self._session_id},
            )
            return False

        self._state = new_state
        logger.debug(
            f"State transition: {old_state.value} → {new_state.value}",
            extra={"session_id": self._session_id},
        )
        if self._on_state_change is not None:
            try:
                self._on_state_change(old_state, new_state)
            except Exception:
                logger.exception("State observer raised")
        return True

    def _transport_is_open(self) -> bool:
        if self._transport is None:
            return False
        state = getattr(self._transport, "state", None)
        return state is None or state is State.OPEN

    def _report_error(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error sink raised")

    def _track(self, task: asyncio.Task[None]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)
