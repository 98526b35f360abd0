"""Synchronous API wrapper for the WattBox client."""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from lib.wattbox.client import WattBoxClient
from lib.wattbox.events import E
from lib.wattbox.models import (
    Outlet,
    OutletAction,
    OutletMode,
    OutletPowerMetrics,
    PowerMetrics,
    SystemInfo,
    UPSMetrics,
)
from lib.wattbox.reconnect import ReconnectPolicy
from lib.wattbox.session import DEFAULT_TIMEOUT, SessionPhase

T = TypeVar("T")

# Extra seconds a blocking call waits beyond the client timeout
CALL_MARGIN = 5.0


class SyncWattBoxClient:
    """Blocking wrapper around WattBoxClient for scripts and the CLI.

    The client lives on a private event loop running in a daemon thread, and
    every call is funnelled through that loop. Event callbacks run on the
    loop thread.
    """

    def __init__(
        self,
        host: str,
        username: str = "wattbox",
        password: str = "wattbox",
        port: int = 23,
        timeout: float = DEFAULT_TIMEOUT,
        max_reconnect_attempts: int | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
    ) -> None:
        """Initialize synchronous WattBox client.

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
            Request timeout in seconds, by default 5.0
        max_reconnect_attempts : int | None, optional
            Reconnect attempts before giving up, by default None (unbounded)
        reconnect_policy : ReconnectPolicy | None, optional
            Full backoff policy; overrides ``max_reconnect_attempts``
        """
        self.host = host
        self.timeout = timeout
        self._client = WattBoxClient(
            host=host,
            username=username,
            password=password,
            port=port,
            timeout=timeout,
            max_reconnect_attempts=max_reconnect_attempts,
            reconnect_policy=reconnect_policy,
        )
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name=f"wattbox-{host}",
            daemon=True,
        )
        self._thread.start()

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        if self._loop.is_closed():
            coro.close()
            raise RuntimeError("Client has been closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout=self.timeout * 2 + CALL_MARGIN)

    @property
    def client(self) -> WattBoxClient:
        """Underlying asynchronous client."""
        return self._client

    @property
    def phase(self) -> SessionPhase:
        return self._client.phase

    @property
    def connected(self) -> bool:
        """Check if connected and authenticated."""
        return self._client.connected

    def on(self, event_type: type[E], callback: Callable[[E], Any]) -> Callable[[], None]:
        """Register an event callback (called on the loop thread)."""

        async def register() -> Callable[[], None]:
            return self._client.on(event_type, callback)

        unsubscribe = self._run(register())

        def off() -> None:
            if not self._loop.is_closed():
                self._loop.call_soon_threadsafe(unsubscribe)

        return off

    def connect(self) -> None:
        """Connect and log in (blocking)."""
        self._run(self._client.connect())

    def disconnect(self) -> None:
        """Disconnect from device (blocking)."""
        self._run(self._client.disconnect())

    def close(self) -> None:
        """Disconnect and stop the loop thread."""
        if self._loop.is_closed():
            return
        try:
            self.disconnect()
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=CALL_MARGIN)
            self._loop.close()

    def send_query(self, message: str) -> str:
        return self._run(self._client.send_query(message))

    def send_control(self, message: str) -> None:
        self._run(self._client.send_control(message))

    def get_auto_reboot(self) -> bool:
        return self._run(self._client.get_auto_reboot())

    def get_firmware(self) -> str:
        return self._run(self._client.get_firmware())

    def get_hostname(self) -> str:
        return self._run(self._client.get_hostname())

    def get_model(self) -> str:
        return self._run(self._client.get_model())

    def get_outlet_count(self) -> int:
        return self._run(self._client.get_outlet_count())

    def get_outlet_names(self) -> list[str]:
        return self._run(self._client.get_outlet_names())

    def get_outlet_power_metrics(self, outlet: int) -> OutletPowerMetrics | None:
        return self._run(self._client.get_outlet_power_metrics(outlet))

    def get_outlet_status(self) -> list[bool]:
        return self._run(self._client.get_outlet_status())

    def get_outlets(self) -> list[Outlet]:
        return self._run(self._client.get_outlets())

    def get_power_metrics(self) -> PowerMetrics | None:
        return self._run(self._client.get_power_metrics())

    def get_service_tag(self) -> str:
        return self._run(self._client.get_service_tag())

    def get_ups_connected(self) -> bool:
        return self._run(self._client.get_ups_connected())

    def get_ups_metrics(self) -> UPSMetrics | None:
        return self._run(self._client.get_ups_metrics())

    def get_system_info(self) -> SystemInfo:
        return self._run(self._client.get_system_info())

    def reboot(self) -> None:
        self._run(self._client.reboot())

    def set_auto_reboot(self, enabled: bool) -> None:
        self._run(self._client.set_auto_reboot(enabled))

    def set_outlet_action(self, outlet: int, action: OutletAction) -> None:
        self._run(self._client.set_outlet_action(outlet, action))

    def set_outlet_mode(self, outlet: int, mode: OutletMode) -> None:
        self._run(self._client.set_outlet_mode(outlet, mode))

    def set_outlet_name(self, outlet: int, name: str) -> None:
        self._run(self._client.set_outlet_name(outlet, name))

    def set_outlet_power_on_delay(self, outlet: int, delay: float) -> None:
        self._run(self._client.set_outlet_power_on_delay(outlet, delay))

    def __enter__(self) -> "SyncWattBoxClient":
        """Context manager entry."""
        try:
            self.connect()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
