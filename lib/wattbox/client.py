"""High-level asynchronous WattBox client."""

import asyncio
from typing import TYPE_CHECKING, Any

from lib.wattbox import commands
from lib.wattbox.models import (
    Outlet,
    OutletAction,
    OutletMode,
    OutletPowerMetrics,
    PowerMetrics,
    SystemInfo,
    UPSMetrics,
)
from lib.wattbox.session import WattBoxSession

if TYPE_CHECKING:
    from lib.wattbox.config import WattBoxDeviceConfig


class WattBoxClient(WattBoxSession):
    """WattBox client exposing one coroutine per protocol command.

    Example
    -------
    >>> async with WattBoxClient("192.168.1.100", "wattbox", "wattbox") as client:
    ...     await client.get_outlet_status()
    [True, True, False, True]
    """

    @classmethod
    def from_config(cls, config: "WattBoxDeviceConfig") -> "WattBoxClient":
        """Create a client from a device configuration.

        Parameters
        ----------
        config : WattBoxDeviceConfig
            Device configuration

        Returns
        -------
        WattBoxClient
            Unconnected client
        """
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            max_reconnect_attempts=config.max_reconnect_attempts,
        )

    def _decode_notification(self, name: str, body: str) -> Any:
        if name == commands.OUTLET_STATUS_NOTIFICATION:
            return commands.parse_outlet_states(f"={body}")
        return super()._decode_notification(name, body)

    # -- queries -----------------------------------------------------------

    async def get_auto_reboot(self) -> bool:
        """Get whether auto-reboot is enabled.

        Protocol command: ``?AutoReboot``
        """
        return commands.parse_flag(await self.send_query(commands.AUTO_REBOOT))

    async def get_firmware(self) -> str:
        """Get the firmware version.

        Protocol command: ``?Firmware``
        """
        return commands.parse_text(await self.send_query(commands.FIRMWARE))

    async def get_hostname(self) -> str:
        """Protocol command: ``?Hostname``"""
        return commands.parse_text(await self.send_query(commands.HOSTNAME))

    async def get_model(self) -> str:
        """Protocol command: ``?Model``"""
        return commands.parse_text(await self.send_query(commands.MODEL))

    async def get_outlet_count(self) -> int:
        """Protocol command: ``?OutletCount``"""
        return commands.parse_int(await self.send_query(commands.OUTLET_COUNT))

    async def get_outlet_names(self) -> list[str]:
        """Get the names of all outlets, in outlet order.

        Protocol command: ``?OutletName``
        """
        return commands.parse_outlet_names(await self.send_query(commands.OUTLET_NAME))

    async def get_outlet_power_metrics(self, outlet: int) -> OutletPowerMetrics | None:
        """Get power readings for one outlet.

        Not supported on WB150/250, which answer ``#Error``.

        Parameters
        ----------
        outlet : int
            Outlet number (1-indexed)

        Returns
        -------
        OutletPowerMetrics | None
            Readings, or None if the reply could not be decoded

        Raises
        ------
        ProtocolError
            If the device does not support power metrics
        """
        reply = await self.send_query(commands.outlet_power_status(outlet))
        return commands.parse_outlet_power(reply)

    async def get_outlet_status(self) -> list[bool]:
        """Get the state of all outlets.

        Index 0 is outlet 1; True means the outlet is on.

        Protocol command: ``?OutletStatus``
        """
        return commands.parse_outlet_states(await self.send_query(commands.OUTLET_STATUS))

    async def get_outlets(self) -> list[Outlet]:
        """Get names and states of all outlets."""
        names, states = await asyncio.gather(self.get_outlet_names(), self.get_outlet_status())
        return [
            Outlet(number=index + 1, name=name, on=on)
            for index, (name, on) in enumerate(zip(names, states))
        ]

    async def get_power_metrics(self) -> PowerMetrics | None:
        """Get power readings for the device.

        Protocol command: ``?PowerStatus`` (not supported on WB150/250)
        """
        return commands.parse_power(await self.send_query(commands.POWER_STATUS))

    async def get_service_tag(self) -> str:
        """Protocol command: ``?ServiceTag``"""
        return commands.parse_text(await self.send_query(commands.SERVICE_TAG))

    async def get_ups_connected(self) -> bool:
        """Get whether a UPS is attached.

        Protocol command: ``?UPSConnection``
        """
        return commands.parse_flag(await self.send_query(commands.UPS_CONNECTION))

    async def get_ups_metrics(self) -> UPSMetrics | None:
        """Get the status of the attached UPS.

        Protocol command: ``?UPSStatus``
        """
        return commands.parse_ups(await self.send_query(commands.UPS_STATUS))

    async def get_system_info(self) -> SystemInfo:
        """Collect identity and configuration with concurrent queries."""
        firmware, hostname, model, service_tag, outlet_count, auto_reboot = await asyncio.gather(
            self.get_firmware(),
            self.get_hostname(),
            self.get_model(),
            self.get_service_tag(),
            self.get_outlet_count(),
            self.get_auto_reboot(),
        )
        return SystemInfo(
            firmware=firmware,
            hostname=hostname,
            model=model,
            service_tag=service_tag,
            outlet_count=outlet_count,
            auto_reboot=auto_reboot,
        )

    # -- controls ----------------------------------------------------------

    async def reboot(self) -> None:
        """Reboot the device immediately.

        The connection drops while the device restarts; the session then
        reconnects on its own.

        Protocol command: ``!Reboot``
        """
        await self.send_control(commands.REBOOT)

    async def set_auto_reboot(self, enabled: bool) -> None:
        """Protocol command: ``!AutoReboot=<0|1>``"""
        await self.send_control(commands.auto_reboot_set(enabled))

    async def set_outlet_action(self, outlet: int, action: OutletAction) -> None:
        """Apply an action to an outlet.

        To reset all outlets, pass outlet 0 with ``OutletAction.RESET``.

        Parameters
        ----------
        outlet : int
            Outlet number (1-indexed), or 0 for all outlets
        action : OutletAction
            OFF, ON, TOGGLE or RESET

        Protocol command: ``!OutletSet=<outlet>,<action>``
        """
        await self.send_control(commands.outlet_set(outlet, action))

    async def set_outlet_mode(self, outlet: int, mode: OutletMode) -> None:
        """Protocol command: ``!OutletModeSet=<outlet>,<mode>``"""
        await self.send_control(commands.outlet_mode_set(outlet, mode))

    async def set_outlet_name(self, outlet: int, name: str) -> None:
        """Protocol command: ``!OutletNameSet=<outlet>,<name>``"""
        await self.send_control(commands.outlet_name_set(outlet, name))

    async def set_outlet_power_on_delay(self, outlet: int, delay: float) -> None:
        """Set the power on delay of an outlet.

        Parameters
        ----------
        outlet : int
            Outlet number (1-indexed)
        delay : float
            Delay in seconds, truncated; 1 to 600

        Protocol command: ``!OutletPowerOnDelaySet=<outlet>,<delay>``
        """
        await self.send_control(commands.outlet_power_on_delay_set(outlet, delay))

    async def __aenter__(self) -> "WattBoxClient":
        """Async context manager entry."""
        await self.connect()
        return self
