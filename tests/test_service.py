"""Tests for the long-running service."""

import pytest

from lib.wattbox.config import WattBoxConfig, WattBoxDeviceConfig, WattBoxServiceConfig
from lib.wattbox.exceptions import ConnectionError
from lib.wattbox.service import WattBoxService
from tests.mock_wattbox_server import MockWattBoxServer, wait_until


def make_config(*devices: WattBoxDeviceConfig, connect_on_start: bool = True) -> WattBoxConfig:
    return WattBoxConfig(
        devices={config.host: config for config in devices},
        service=WattBoxServiceConfig(connect_on_start=connect_on_start),
    )


@pytest.mark.asyncio
async def test_service_start_connects_devices(mock_server: MockWattBoxServer) -> None:
    """Test configured devices are connected on start."""
    config = make_config(WattBoxDeviceConfig(host="127.0.0.1", port=mock_server.actual_port))
    service = WattBoxService(config=config)

    await service.start()
    try:
        assert service.running
        client = await service.get_client("127.0.0.1")
        assert client.connected

        status = await service.get_status()
        assert status["running"] is True
        assert status["pool"]["connections"]["127.0.0.1"]["connected"] is True
    finally:
        await service.stop()

    assert not service.running
    assert not client.connected


@pytest.mark.asyncio
async def test_service_start_tolerates_unreachable_device() -> None:
    """Test a failed initial connect is logged, not raised."""
    with MockWattBoxServer() as server:
        port = server.actual_port
    config = make_config(
        WattBoxDeviceConfig(host="127.0.0.1", port=port, timeout=0.5, max_reconnect_attempts=0)
    )
    service = WattBoxService(config=config)

    await service.start()
    try:
        client = await service.get_client("127.0.0.1")
        assert not client.connected
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_service_without_connect_on_start(mock_server: MockWattBoxServer) -> None:
    """Test devices can be registered without connecting."""
    config = make_config(
        WattBoxDeviceConfig(host="127.0.0.1", port=mock_server.actual_port),
        connect_on_start=False,
    )
    service = WattBoxService(config=config)
    await service.start()
    try:
        assert mock_server.connection_count == 0
        assert service.pool.hosts == ["127.0.0.1"]
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_service_outlet_state_cache(mock_server: MockWattBoxServer) -> None:
    """Test outlet states are cached from queries and notifications."""
    config = make_config(WattBoxDeviceConfig(host="127.0.0.1", port=mock_server.actual_port))
    service = WattBoxService(config=config)
    await service.start()
    try:
        assert service.cached_outlet_status("127.0.0.1") is None
        assert await service.get_outlet_status("127.0.0.1") == [True, True, False, True]
        assert service.cached_outlet_status("127.0.0.1")["outlets"] == [True, True, False, True]

        mock_server.push("~OutletStatus=0,0,0,0")
        assert await wait_until(
            lambda: service.cached_outlet_status("127.0.0.1")["outlets"] == [False] * 4
        )
        assert await service.get_outlet_status("127.0.0.1", refresh=False) == [False] * 4

        outlets = await service.get_outlets("127.0.0.1")
        assert [outlet.on for outlet in outlets] == [True, True, False, True]
        assert service.cached_outlet_status("127.0.0.1")["outlets"] == [True, True, False, True]
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_service_unmanaged_host() -> None:
    """Test lookups for unknown devices."""
    service = WattBoxService(config=make_config())
    with pytest.raises(ConnectionError, match="not managed"):
        await service.get_client("10.9.9.9")


@pytest.mark.asyncio
async def test_service_add_device_uses_defaults(mock_server: MockWattBoxServer) -> None:
    """Test devices added at runtime inherit the default settings."""
    config = WattBoxConfig(default_port=mock_server.actual_port, default_timeout=2.0)
    service = WattBoxService(config=config)
    client = await service.add_device("127.0.0.1")
    try:
        assert client.port == mock_server.actual_port
        assert await service.add_device("127.0.0.1") is client
        await client.connect()
        assert client.connected
    finally:
        await service.pool.disconnect_all()


@pytest.fixture
def mock_server() -> MockWattBoxServer:
    """Create mock WattBox server fixture."""
    server = MockWattBoxServer()
    server.start()
    yield server
    server.stop()
