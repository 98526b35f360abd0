"""Persistent session engine for the WattBox integration protocol.

One ``WattBoxSession`` owns one TCP stream. It drives the login handshake,
classifies every inbound line, correlates replies to the callers waiting for
them and reconnects with capped exponential backoff when the stream drops.

All state is mutated from the event loop that runs the session.
"""

import asyncio
import enum
import socket
from collections.abc import Callable
from typing import Any

from lib.wattbox.bus import CorrelationBus
from lib.wattbox.events import (
    DiagnosticEvent,
    E,
    EventHub,
    NotificationEvent,
    ReadyEvent,
    ReconnectEvent,
    SocketEvent,
)
from lib.wattbox.exceptions import (
    AuthenticationError,
    ConnectionError,
    NotConnectedError,
    ProtocolError,
    TimeoutError,
)
from lib.wattbox.framing import LineFramer
from lib.wattbox.logging import log_debug, log_error, log_info, log_success, log_warn
from lib.wattbox.protocol import (
    CONTROL_ERROR,
    CONTROL_KEY,
    CONTROL_SIGIL,
    LOGIN_KEY,
    PASSWORD_PROMPT,
    QUERY_SIGIL,
    TELNET_PORT,
    USERNAME_PROMPT,
    MessageKind,
    check_outbound,
    classify,
    correlation_key,
    encode_line,
)
from lib.wattbox.reconnect import ReconnectPolicy, ReconnectScheduler

DEFAULT_TIMEOUT = 5.0
READ_CHUNK_SIZE = 4096


class SessionPhase(enum.Enum):
    """Lifecycle phase of a session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_LOGIN = "awaiting_login"
    READY = "ready"
    CLOSING = "closing"


class WattBoxSession:
    """Connection, login, correlation and reconnection for one device."""

    def __init__(
        self,
        host: str,
        username: str = "wattbox",
        password: str = "wattbox",
        port: int = TELNET_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        max_reconnect_attempts: int | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
    ) -> None:
        """Initialize session.

        Parameters
        ----------
        host : str
            Device IP address or hostname
        username : str, optional
            Login username, by default "wattbox"
        password : str, optional
            Login password, by default "wattbox"
        port : int, optional
            Telnet port, by default 23
        timeout : float, optional
            Connect, login and request timeout in seconds, by default 5.0
        max_reconnect_attempts : int | None, optional
            Reconnect attempts before giving up, by default None (unbounded)
        reconnect_policy : ReconnectPolicy | None, optional
            Full backoff policy; overrides ``max_reconnect_attempts``
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

        self.events = EventHub()
        self._bus = CorrelationBus(device_ip=host)
        self._framer = LineFramer(flush_tokens=(USERNAME_PROMPT, PASSWORD_PROMPT))
        self._reconnect = ReconnectScheduler(
            reconnect_policy or ReconnectPolicy(max_attempts=max_reconnect_attempts)
        )

        self._phase = SessionPhase.DISCONNECTED
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._key_users: dict[str, int] = {}
        self._inflight: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.host}:{self.port} {self._phase.value}>"

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def connected(self) -> bool:
        """True when connected and authenticated."""
        return self._phase is SessionPhase.READY

    @property
    def reconnect_attempts(self) -> int:
        """Reconnect counter; ``RECONNECT_DISABLED`` once retrying has stopped."""
        return self._reconnect.attempts

    @property
    def reconnect_enabled(self) -> bool:
        return self._reconnect.enabled

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect.pending

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return self._reconnect.policy

    def on(self, event_type: type[E], callback: Callable[[E], Any]) -> Callable[[], None]:
        """Register an event callback; see ``EventHub.on``."""
        return self.events.on(event_type, callback)

    # -- lifecycle ---------------------------------------------------------

    async def connect(self) -> None:
        """Connect and log in.

        Joins an attempt already in flight and returns at once when the
        session is ready. Re-enables automatic reconnection after
        ``disconnect``.

        Raises
        ------
        ConnectionError
            If the transport cannot be opened or drops before login
        AuthenticationError
            If the device rejects the credentials
        """
        if self._phase is SessionPhase.READY:
            return
        self._reconnect.enable()
        self._reconnect.cancel()
        await self._join_connect()

    async def disconnect(self) -> None:
        """Close the session and stop reconnecting. Safe to call repeatedly."""
        self._reconnect.disable()
        if self._writer is None:
            if self._phase is not SessionPhase.DISCONNECTED:
                log_debug("Disconnect requested while connecting", device_ip=self.host)
            self._phase = SessionPhase.DISCONNECTED
            return

        await self._close_transport()
        log_info("Disconnected", device_ip=self.host)

    async def _join_connect(self) -> None:
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.get_running_loop().create_task(self._open_session())
            self._connect_task.add_done_callback(_retrieve_result)
        await asyncio.shield(self._connect_task)

    async def _open_session(self) -> None:
        self._phase = SessionPhase.CONNECTING
        log_info(f"Connecting to {self.host}:{self.port}", device_ip=self.host)

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            self.events.emit(SocketEvent("error", reason))
            log_warn(f"Connection failed: {reason}", device_ip=self.host)
            if self._phase is SessionPhase.CONNECTING:
                self._phase = SessionPhase.DISCONNECTED
                self._schedule_reconnect()
            raise ConnectionError(f"Unable to connect: {reason}", device_ip=self.host) from e

        if self._phase is not SessionPhase.CONNECTING:
            writer.close()
            raise ConnectionError("Disconnected while connecting", device_ip=self.host)

        _enable_keepalive(writer)
        self._reader, self._writer = reader, writer
        self._framer.reset()
        self._phase = SessionPhase.AWAITING_LOGIN
        self.events.emit(SocketEvent("connect"))

        login = self._bus.subscribe(LOGIN_KEY)
        self._read_task = asyncio.get_running_loop().create_task(self._read_loop(reader, writer))
        try:
            success = await asyncio.wait_for(login, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.events.emit(SocketEvent("timeout", "login"))
            log_warn("Timed out awaiting login", device_ip=self.host)
            _abort(writer)
            raise ConnectionError(
                f"Login not completed within {self.timeout}s", device_ip=self.host
            ) from e
        finally:
            self._bus.unsubscribe(LOGIN_KEY, login)

        if not success:
            log_error("Invalid login", device_ip=self.host)
            self._reconnect.disable()
            await self._close_transport()
            raise AuthenticationError("Invalid Login", device_ip=self.host)

        if self._writer is not writer:
            raise ConnectionError("Connection closed before login", device_ip=self.host)

        self._phase = SessionPhase.READY
        self._reconnect.reset()
        log_success("Logged in", device_ip=self.host)
        self.events.emit(ReadyEvent())

    async def _close_transport(self) -> None:
        writer, read_task = self._writer, self._read_task
        if writer is None:
            return

        self._phase = SessionPhase.CLOSING
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            log_debug(f"Error while closing transport: {e}", device_ip=self.host)

        if read_task is not None and not read_task.done():
            read_task.cancel()
        self._on_transport_closed(writer)

    def _on_transport_closed(self, writer: asyncio.StreamWriter) -> None:
        if writer is not self._writer:
            return

        self._reader = self._writer = None
        self._read_task = None
        self._phase = SessionPhase.DISCONNECTED
        self._framer.reset()
        if not writer.is_closing():
            writer.close()

        self.events.emit(SocketEvent("close"))
        self._bus.fail_all(self._connection_lost_error)

        if self._reconnect.enabled:
            log_warn("Connection lost", device_ip=self.host)
            self._schedule_reconnect()

    def _connection_lost_error(self, key: str) -> Exception:
        if key == LOGIN_KEY:
            return ConnectionError("Connection closed before login", device_ip=self.host)
        return NotConnectedError(
            f"Connection lost awaiting reply to {self._inflight.get(key, key)}",
            device_ip=self.host,
        )

    def _schedule_reconnect(self) -> None:
        delay = self._reconnect.schedule(self._reconnect_attempt)
        if delay is None:
            if self._reconnect.enabled and not self._reconnect.pending:
                log_error(
                    f"Giving up after {self._reconnect.attempts} reconnect attempts",
                    device_ip=self.host,
                )
            return

        attempt = self._reconnect.attempts
        max_attempts = self._reconnect.policy.max_attempts
        detail = f"#{attempt}/{max_attempts or 'inf'} in {delay:g}s"
        log_warn(f"Reconnect {detail}", device_ip=self.host, attempt=attempt, delay=delay)
        self.events.emit(
            ReconnectEvent(
                detail=detail,
                attempt=attempt,
                max_attempts=max_attempts,
                delay=delay,
            )
        )

    async def _reconnect_attempt(self) -> None:
        if self._phase is SessionPhase.READY:
            return
        try:
            await self._join_connect()
        except AuthenticationError as e:
            log_error(f"Reconnect rejected: {e.message}", device_ip=self.host)
        except ConnectionError as e:
            log_warn(f"Reconnect attempt failed: {e.message}", device_ip=self.host)

    # -- inbound -----------------------------------------------------------

    async def _read_loop(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while writer is self._writer:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break
                self.events.emit(SocketEvent("data", data.decode("utf-8", errors="replace")))
                for line in self._framer.feed(data):
                    self._dispatch(line, writer)
        except OSError as e:
            reason = str(e) or type(e).__name__
            self.events.emit(SocketEvent("error", reason))
            log_warn(f"Transport error: {reason}", device_ip=self.host)
        finally:
            self._on_transport_closed(writer)

    def _dispatch(self, line: str, writer: asyncio.StreamWriter) -> None:
        message = classify(line)

        if message.kind is MessageKind.LOGIN_PROMPT:
            if line == USERNAME_PROMPT:
                writer.write(encode_line(self.username))
            elif line == PASSWORD_PROMPT:
                writer.write(encode_line(self.password))
            return

        if message.kind is MessageKind.LOGIN_RESULT:
            if not message.ok:
                # The device closes the socket right after rejecting a login
                self._reconnect.disable()
            self._bus.publish(LOGIN_KEY, message.ok)
            return

        self.events.emit(DiagnosticEvent("in", line))
        log_debug(f"[<---] {line}", device_ip=self.host)

        if message.kind is MessageKind.QUERY_REPLY:
            if not self._bus.publish(message.key, line):
                log_debug(f"No caller waiting for {message.key}", device_ip=self.host)

        elif message.kind is MessageKind.CONTROL_ACK:
            if message.ok:
                self._bus.publish(CONTROL_KEY)
            else:
                failed = self._bus.fail_all(self._protocol_error, exclude=(LOGIN_KEY,))
                log_warn(f"Device returned {CONTROL_ERROR} ({failed} pending)", device_ip=self.host)

        elif message.kind is MessageKind.NOTIFICATION:
            payload = self._decode_notification(message.key, message.body)
            self.events.emit(NotificationEvent(name=message.key, payload=payload, line=line))

        else:
            log_debug(f"Unrecognized line: {line}", device_ip=self.host)

    def _protocol_error(self, key: str) -> Exception:
        command = self._inflight.get(key, key)
        return ProtocolError(
            f"Device returned {CONTROL_ERROR} for {command}",
            device_ip=self.host,
            command=command,
        )

    def _decode_notification(self, name: str, body: str) -> Any:
        """Decode a notification payload; subclasses handle known names."""
        return body.split(",") if body else []

    # -- command gateway ---------------------------------------------------

    async def send_query(self, message: str) -> str:
        """Send a ``?Name`` query and return the raw reply line.

        Parameters
        ----------
        message : str
            Query such as ``?Firmware`` or ``?OutletPowerStatus=1``

        Returns
        -------
        str
            Full reply line, e.g. ``?Firmware=2.8.0.0``

        Raises
        ------
        NotConnectedError
            If the session is not ready, or drops before the reply
        TimeoutError
            If no reply arrives within the timeout
        ProtocolError
            If the device answers ``#Error``
        """
        check_outbound(message, QUERY_SIGIL)
        return await self._request(message, correlation_key(message))

    async def send_control(self, message: str) -> None:
        """Send a ``!Name=args`` control command and wait for ``OK``.

        Raises the same errors as ``send_query``.
        """
        check_outbound(message, CONTROL_SIGIL)
        await self._request(message, CONTROL_KEY)

    async def _request(self, message: str, key: str) -> Any:
        # Same-key callers queue here; the bus itself refuses a second waiter
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        self._key_users[key] = self._key_users.get(key, 0) + 1
        try:
            return await self._request_locked(message, key, lock)
        finally:
            self._key_users[key] -= 1
            if not self._key_users[key]:
                del self._key_users[key]
                del self._key_locks[key]

    async def _request_locked(self, message: str, key: str, lock: asyncio.Lock) -> Any:
        async with lock:
            writer = self._writer
            if self._phase is not SessionPhase.READY or writer is None:
                raise NotConnectedError("Not connected", device_ip=self.host)

            waiter = self._bus.subscribe(key)
            self._inflight[key] = message
            try:
                self.events.emit(DiagnosticEvent("out", message))
                log_debug(f"[--->] {message}", device_ip=self.host, command=message)
                writer.write(encode_line(message))
                return await asyncio.wait_for(_drain_then(writer, waiter), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                self.events.emit(SocketEvent("timeout", message))
                log_warn(
                    f"No reply to {message} within {self.timeout}s, dropping connection",
                    device_ip=self.host,
                    command=message,
                )
                _abort(writer)
                raise TimeoutError(
                    f"No reply to {message} within {self.timeout}s",
                    device_ip=self.host,
                    timeout=self.timeout,
                    command=message,
                ) from e
            except OSError as e:
                raise NotConnectedError(f"Write failed: {e}", device_ip=self.host) from e
            finally:
                self._inflight.pop(key, None)
                self._bus.unsubscribe(key, waiter)

    async def __aenter__(self) -> "WattBoxSession":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()


async def _drain_then(writer: asyncio.StreamWriter, waiter: asyncio.Future) -> Any:
    await writer.drain()
    return await waiter


def _abort(writer: asyncio.StreamWriter) -> None:
    """Destroy the transport without a graceful close."""
    writer.transport.abort()


def _enable_keepalive(writer: asyncio.StreamWriter) -> None:
    sock = writer.get_extra_info("socket")
    if sock is not None:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)


def _retrieve_result(task: asyncio.Task) -> None:
    # Callers may have stopped waiting; mark the outcome as observed
    if not task.cancelled():
        task.exception()
