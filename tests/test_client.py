"""Tests for the WattBox client command catalog."""

import pytest

from lib.wattbox.client import WattBoxClient
from lib.wattbox.config import WattBoxDeviceConfig
from lib.wattbox.events import NotificationEvent
from lib.wattbox.exceptions import ProtocolError
from lib.wattbox.models import Outlet, OutletAction, OutletMode
from lib.wattbox.reconnect import ReconnectPolicy
from tests.mock_wattbox_server import MockWattBoxServer, wait_until


def make_client(server: MockWattBoxServer) -> WattBoxClient:
    return WattBoxClient(host="127.0.0.1", port=server.actual_port, timeout=2.0)


@pytest.mark.asyncio
async def test_client_identity_queries(mock_server: MockWattBoxServer) -> None:
    """Test scalar queries."""
    async with make_client(mock_server) as client:
        assert await client.get_firmware() == "2.8.0.0"
        assert await client.get_hostname() == "WattBox"
        assert await client.get_model() == "WB-800-IPVM-12"
        assert await client.get_service_tag() == "ST191500681E8422"
        assert await client.get_outlet_count() == 4
        assert await client.get_auto_reboot() is True


@pytest.mark.asyncio
async def test_client_system_info(mock_server: MockWattBoxServer) -> None:
    """Test the concurrent identity summary."""
    async with make_client(mock_server) as client:
        info = await client.get_system_info()

    assert info.model == "WB-800-IPVM-12"
    assert info.outlet_count == 4
    assert info.auto_reboot is True
    assert sorted(mock_server.received) == sorted(
        ["?Firmware", "?Hostname", "?Model", "?ServiceTag", "?OutletCount", "?AutoReboot"]
    )


@pytest.mark.asyncio
async def test_client_outlets(mock_server: MockWattBoxServer) -> None:
    """Test outlet names and states."""
    async with make_client(mock_server) as client:
        assert await client.get_outlet_names() == ["Router", "Switch", "NAS", "Outlet 4"]
        assert await client.get_outlet_status() == [True, True, False, True]
        outlets = await client.get_outlets()

    assert outlets[0] == Outlet(number=1, name="Router", on=True)
    assert outlets[2] == Outlet(number=3, name="NAS", on=False)
    assert len(outlets) == 4


@pytest.mark.asyncio
async def test_client_power_and_ups(mock_server: MockWattBoxServer) -> None:
    """Test metric queries."""
    async with make_client(mock_server) as client:
        power = await client.get_power_metrics()
        outlet_power = await client.get_outlet_power_metrics(1)
        assert await client.get_ups_connected() is True
        ups = await client.get_ups_metrics()

    assert power is not None and power.watts == 150.0
    assert outlet_power is not None and outlet_power.outlet == 1
    assert ups is not None and ups.battery_charge == 95
    assert "?OutletPowerStatus=1" in mock_server.received


@pytest.mark.asyncio
async def test_client_unsupported_power_metrics(mock_server: MockWattBoxServer) -> None:
    """Test models without metering answer #Error."""
    mock_server.replies["?OutletPowerStatus"] = "#Error"
    async with make_client(mock_server) as client:
        with pytest.raises(ProtocolError):
            await client.get_outlet_power_metrics(1)


@pytest.mark.asyncio
async def test_client_controls(mock_server: MockWattBoxServer) -> None:
    """Test control commands reach the device in wire format."""
    async with make_client(mock_server) as client:
        await client.set_outlet_action(2, OutletAction.OFF)
        await client.set_outlet_action(0, OutletAction.RESET)
        await client.set_outlet_mode(3, OutletMode.DISABLED)
        await client.set_outlet_name(1, "Router")
        await client.set_outlet_power_on_delay(1, 30)
        await client.set_auto_reboot(False)

    assert mock_server.received == [
        "!OutletSet=2,OFF",
        "!OutletSet=0,RESET",
        "!OutletModeSet=3,1",
        "!OutletNameSet=1,Router",
        "!OutletPowerOnDelaySet=1,30",
        "!AutoReboot=0",
    ]


@pytest.mark.asyncio
async def test_client_invalid_arguments_are_not_sent(mock_server: MockWattBoxServer) -> None:
    """Test argument validation happens before writing."""
    async with make_client(mock_server) as client:
        with pytest.raises(ValueError):
            await client.set_outlet_action(0, OutletAction.ON)
        with pytest.raises(ValueError):
            await client.set_outlet_power_on_delay(1, 1000)

    assert mock_server.received == []


@pytest.mark.asyncio
async def test_client_reboot_reconnects(mock_server: MockWattBoxServer) -> None:
    """Test the session recovers after the device restarts."""
    client = WattBoxClient(
        host="127.0.0.1",
        port=mock_server.actual_port,
        timeout=2.0,
        reconnect_policy=ReconnectPolicy(unit=0.01),
    )
    await client.connect()
    try:
        await client.reboot()
        assert mock_server.received[-1] == "!Reboot"
        mock_server.drop_connections()

        assert await wait_until(lambda: mock_server.connection_count == 2 and client.connected)
        assert await client.get_model() == "WB-800-IPVM-12"
    finally:
        await client.disconnect()


@pytest.mark.asyncio
async def test_client_decodes_outlet_notifications(mock_server: MockWattBoxServer) -> None:
    """Test ~OutletStatus payloads decode to booleans."""
    notifications: list[NotificationEvent] = []
    async with make_client(mock_server) as client:
        client.on(NotificationEvent, notifications.append)
        mock_server.push("~OutletStatus=0,1,1,0")
        mock_server.push("~Unknown=a,b")
        assert await wait_until(lambda: len(notifications) == 2)

    assert notifications[0].payload == [False, True, True, False]
    assert notifications[1].payload == ["a", "b"]


def test_client_from_config() -> None:
    """Test building a client from device configuration."""
    config = WattBoxDeviceConfig(
        host="10.0.0.20",
        port=2323,
        username="admin",
        password="pw",
        timeout=1.5,
        max_reconnect_attempts=3,
    )
    client = WattBoxClient.from_config(config)
    assert client.host == "10.0.0.20"
    assert client.port == 2323
    assert client.username == "admin"
    assert client.timeout == 1.5
    assert client.reconnect_policy.max_attempts == 3
    assert not client.connected


@pytest.fixture
def mock_server() -> MockWattBoxServer:
    """Create mock WattBox server fixture."""
    server = MockWattBoxServer()
    server.start()
    yield server
    server.stop()
