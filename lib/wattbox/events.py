"""Typed events raised by a WattBox session."""

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from lib.wattbox.logging import get_logger


@dataclass(frozen=True)
class Event:
    """Base class for all session events."""


@dataclass(frozen=True)
class DiagnosticEvent(Event):
    """A raw protocol line, inbound (``in``) or outbound (``out``)."""

    direction: Literal["in", "out"]
    line: str


@dataclass(frozen=True)
class SocketEvent(Event):
    """Transport lifecycle: connect, data, close, error or timeout."""

    name: str
    detail: str | None = None


@dataclass(frozen=True)
class ReconnectEvent(SocketEvent):
    """A reconnect attempt has been scheduled."""

    name: str = "reconnect"
    attempt: int = 0
    max_attempts: int | None = None
    delay: float = 0.0


@dataclass(frozen=True)
class NotificationEvent(Event):
    """An unsolicited ``~Name=...`` message from the device."""

    name: str
    payload: Any
    line: str


@dataclass(frozen=True)
class ReadyEvent(Event):
    """The session is connected and authenticated."""


E = TypeVar("E", bound=Event)
Callback = Callable[[Any], Any]


class EventHub:
    """Typed callback registry.

    Callbacks registered for a class receive that class and its subclasses.
    Coroutine callbacks are scheduled on the running loop. A failing callback
    is logged and does not affect the emitter.
    """

    def __init__(self) -> None:
        self._callbacks: list[tuple[type[Event], Callback]] = []
        self._tasks: set[asyncio.Task] = set()

    def on(self, event_type: type[E], callback: Callable[[E], Any]) -> Callable[[], None]:
        """Register ``callback`` for ``event_type``.

        Parameters
        ----------
        event_type : type[Event]
            Event class to listen for
        callback : Callable[[Event], Any]
            Function or coroutine function taking the event

        Returns
        -------
        Callable[[], None]
            Function removing the registration
        """
        entry = (event_type, callback)
        self._callbacks.append(entry)

        def unsubscribe() -> None:
            if entry in self._callbacks:
                self._callbacks.remove(entry)

        return unsubscribe

    def off(self, event_type: type[Event], callback: Callback) -> None:
        """Remove every registration of ``callback`` for ``event_type``."""
        self._callbacks = [
            entry for entry in self._callbacks if entry != (event_type, callback)
        ]

    def emit(self, event: Event) -> None:
        """Deliver ``event`` to matching callbacks in registration order."""
        for event_type, callback in list(self._callbacks):
            if not isinstance(event, event_type):
                continue
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
            except Exception:
                get_logger().exception(f"Event callback failed for {type(event).__name__}")

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            get_logger().error("Async event callback failed", exc_info=task.exception())
