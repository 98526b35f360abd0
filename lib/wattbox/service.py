"""Long-running WattBox service managing a pool of device clients."""

import asyncio
import signal
import time
from typing import Any

from lib.wattbox import commands
from lib.wattbox.client import WattBoxClient
from lib.wattbox.config import WattBoxConfig, load_config
from lib.wattbox.events import NotificationEvent
from lib.wattbox.exceptions import ConnectionError, WattBoxError
from lib.wattbox.logging import log_error, log_info, log_success, log_warn
from lib.wattbox.models import Outlet
from lib.wattbox.pool import ClientPool


class WattBoxService:
    """Long-running service connecting every configured device."""

    def __init__(self, config: WattBoxConfig | None = None) -> None:
        """Initialize WattBox service.

        Parameters
        ----------
        config : WattBoxConfig | None, optional
            Service configuration, by default None (loads from config)
        """
        self.config = config or load_config()
        self.pool = ClientPool(max_connections=self.config.service.max_connections)
        self._outlet_states: dict[str, dict[str, Any]] = {}
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the service and connect configured devices."""
        if self._running:
            return

        log_info("Starting WattBox service...")
        self._running = True
        self._shutdown_event.clear()

        for host in self.config.devices:
            await self.add_device(host)

        if self.config.service.connect_on_start:
            await asyncio.gather(*(self._connect(host) for host in self.pool.hosts))

        log_success(f"WattBox service started ({len(self.pool.hosts)} devices)")

    async def stop(self) -> None:
        """Stop the service."""
        if not self._running:
            return

        log_info("Stopping WattBox service...")
        self._running = False
        self._shutdown_event.set()
        await self.pool.disconnect_all()

        log_success("WattBox service stopped")

    async def add_device(self, host: str) -> WattBoxClient:
        """Add a device to the pool using its configuration.

        Parameters
        ----------
        host : str
            Device host IP

        Returns
        -------
        WattBoxClient
            Client for the device (not necessarily connected)
        """
        existing = await self.pool.get(host)
        if existing is not None:
            return existing

        client = await self.pool.add(self.config.get_device_config(host))

        def on_notification(event: NotificationEvent) -> None:
            if event.name == commands.OUTLET_STATUS_NOTIFICATION:
                self._record_outlets(host, event.payload)

        client.on(NotificationEvent, on_notification)
        return client

    async def _connect(self, host: str) -> None:
        client = await self.pool.get(host)
        if client is None:
            return
        try:
            await client.connect()
        except WattBoxError as e:
            # The client keeps retrying in the background unless login was rejected
            log_error(f"Initial connect failed: {e.message}", device_ip=host)

    def _record_outlets(self, host: str, states: list[bool]) -> None:
        self._outlet_states[host] = {"outlets": list(states), "updated_at": time.time()}

    async def get_client(self, host: str) -> WattBoxClient:
        """Get the client for a managed device.

        Raises
        ------
        ConnectionError
            If the device is not managed by this service
        """
        client = await self.pool.get(host)
        if client is None:
            raise ConnectionError(f"Device {host} not managed", device_ip=host)
        return client

    async def get_outlet_status(self, host: str, refresh: bool = True) -> list[bool]:
        """Get outlet states, from the device or the notification cache.

        Parameters
        ----------
        host : str
            Device host IP
        refresh : bool, optional
            Query the device instead of using the cache, by default True

        Returns
        -------
        list[bool]
            Outlet states, index 0 is outlet 1
        """
        client = await self.get_client(host)
        cached = self._outlet_states.get(host)
        if not refresh and cached is not None:
            return list(cached["outlets"])

        states = await client.get_outlet_status()
        self._record_outlets(host, states)
        return states

    async def get_outlets(self, host: str) -> list[Outlet]:
        """Get outlet names and states, refreshing the state cache."""
        client = await self.get_client(host)
        outlets = await client.get_outlets()
        self._record_outlets(host, [outlet.on for outlet in outlets])
        return outlets

    def cached_outlet_status(self, host: str) -> dict[str, Any] | None:
        """Last known outlet states and their timestamp, if any."""
        return self._outlet_states.get(host)

    async def get_status(self) -> dict:
        """Get service status.

        Returns
        -------
        dict
            Service status
        """
        pool_status = await self.pool.get_status()
        return {
            "running": self._running,
            "pool": pool_status,
        }

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        log_warn("Shutdown signal received")
        asyncio.ensure_future(self.stop())

    async def run(self) -> None:
        """Run the service until SIGTERM/SIGINT."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self.stop()
