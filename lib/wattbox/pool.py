"""Client pool for managing connections to several WattBox devices."""

import asyncio
import time
from typing import Any

from lib.wattbox.client import WattBoxClient
from lib.wattbox.config import WattBoxDeviceConfig
from lib.wattbox.events import ReadyEvent
from lib.wattbox.exceptions import ConnectionError
from lib.wattbox.logging import log_info, log_warn


class ClientPool:
    """Registry of persistent clients keyed by host.

    Each client recovers its own connection, so the pool only tracks
    membership and metadata.
    """

    def __init__(self, max_connections: int = 16) -> None:
        """Initialize client pool.

        Parameters
        ----------
        max_connections : int, optional
            Maximum number of managed devices, by default 16
        """
        self.max_connections = max_connections

        self._clients: dict[str, WattBoxClient] = {}
        self._client_info: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def add(self, config: WattBoxDeviceConfig) -> WattBoxClient:
        """Add a device to the pool without connecting it.

        Parameters
        ----------
        config : WattBoxDeviceConfig
            Device configuration

        Returns
        -------
        WattBoxClient
            New or existing client for ``config.host``

        Raises
        ------
        ConnectionError
            If the pool is full
        """
        async with self._lock:
            if config.host in self._clients:
                return self._clients[config.host]

            if len(self._clients) >= self.max_connections:
                raise ConnectionError(
                    f"Client pool full (max {self.max_connections})",
                    device_ip=config.host,
                )

            client = WattBoxClient.from_config(config)
            info = {
                "port": config.port,
                "timeout": config.timeout,
                "max_reconnect_attempts": config.max_reconnect_attempts,
                "added_at": time.time(),
                "connected_at": None,
            }

            def on_ready(event: ReadyEvent) -> None:
                info["connected_at"] = time.time()

            client.on(ReadyEvent, on_ready)
            self._clients[config.host] = client
            self._client_info[config.host] = info
            return client

    async def connect(self, config: WattBoxDeviceConfig) -> WattBoxClient:
        """Add a device to the pool and connect it.

        A failed connect leaves the client in the pool; it keeps retrying in
        the background unless the device rejected the login.

        Raises
        ------
        ConnectionError
            If the pool is full or the connection fails
        AuthenticationError
            If the device rejects the credentials
        """
        client = await self.add(config)
        await client.connect()
        log_info("Added to pool", device_ip=config.host)
        return client

    async def get(self, host: str) -> WattBoxClient | None:
        """Get client from pool.

        Parameters
        ----------
        host : str
            Device host IP

        Returns
        -------
        WattBoxClient | None
            Client if the host is managed, None otherwise
        """
        async with self._lock:
            return self._clients.get(host)

    async def disconnect(self, host: str) -> None:
        """Disconnect device and remove it from the pool.

        Parameters
        ----------
        host : str
            Device host IP
        """
        async with self._lock:
            client = self._clients.pop(host, None)
            self._client_info.pop(host, None)

        if client is not None:
            await client.disconnect()
            log_info("Removed from pool", device_ip=host)

    async def disconnect_all(self) -> None:
        """Disconnect all devices in pool."""
        async with self._lock:
            hosts = list(self._clients)

        results = await asyncio.gather(
            *(self.disconnect(host) for host in hosts), return_exceptions=True
        )
        for host, result in zip(hosts, results):
            if isinstance(result, Exception):
                log_warn(f"Disconnect failed: {result}", device_ip=host)

    @property
    def hosts(self) -> list[str]:
        return list(self._clients)

    async def get_status(self) -> dict:
        """Get pool status.

        Returns
        -------
        dict
            Pool status information
        """
        async with self._lock:
            return {
                "total_connections": len(self._clients),
                "max_connections": self.max_connections,
                "connections": {
                    host: {
                        "connected": client.connected,
                        "phase": client.phase.value,
                        "reconnect_attempts": client.reconnect_attempts,
                        "info": dict(self._client_info.get(host, {})),
                    }
                    for host, client in self._clients.items()
                },
            }

    async def __aenter__(self) -> "ClientPool":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect_all()
