"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from lib.wattbox.api.app import create_app
from lib.wattbox.config import WattBoxConfig, WattBoxDeviceConfig
from tests.mock_wattbox_server import MockWattBoxServer

HOST = "127.0.0.1"


def test_health(api: TestClient) -> None:
    """Test health check."""
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "wattbox"}


def test_health_status(api: TestClient) -> None:
    """Test service status."""
    response = api.get("/health/status")
    assert response.status_code == 200
    body = response.json()
    assert body["running"] is True
    assert body["pool"]["total_connections"] == 1


def test_list_devices(api: TestClient) -> None:
    """Test device listing."""
    response = api.get("/devices")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["devices"][0]["host"] == HOST
    assert body["devices"][0]["connected"] is True


def test_device_status(api: TestClient) -> None:
    """Test per-device status with cached outlet states."""
    response = api.get(f"/devices/{HOST}/status")
    assert response.status_code == 200
    body = response.json()
    assert body["connected"] is True
    assert body["phase"] == "ready"
    assert body["reconnect_attempts"] == 0
    assert body["outlets"] is None

    api.get(f"/devices/{HOST}/outlets")
    assert api.get(f"/devices/{HOST}/status").json()["outlets"] == [True, True, False, True]


def test_device_info(api: TestClient) -> None:
    """Test identity summary."""
    response = api.get(f"/devices/{HOST}/info")
    assert response.status_code == 200
    assert response.json() == {
        "firmware": "2.8.0.0",
        "hostname": "WattBox",
        "model": "WB-800-IPVM-12",
        "service_tag": "ST191500681E8422",
        "outlet_count": 4,
        "auto_reboot": True,
    }


def test_outlets(api: TestClient) -> None:
    """Test outlet names and states."""
    response = api.get(f"/devices/{HOST}/outlets")
    assert response.status_code == 200
    outlets = response.json()["outlets"]
    assert outlets[0] == {"number": 1, "name": "Router", "on": True}
    assert len(outlets) == 4


def test_power_and_ups(api: TestClient) -> None:
    """Test metric endpoints."""
    power = api.get(f"/devices/{HOST}/power")
    assert power.status_code == 200
    assert power.json()["watts"] == 150.0

    outlet_power = api.get(f"/devices/{HOST}/outlets/1/power")
    assert outlet_power.status_code == 200
    assert outlet_power.json()["outlet"] == 1

    ups = api.get(f"/devices/{HOST}/ups")
    assert ups.status_code == 200
    assert ups.json()["battery_charge"] == 95


def test_ups_not_attached(api: TestClient, mock_server: MockWattBoxServer) -> None:
    """Test a device without a UPS."""
    mock_server.replies["?UPSConnection"] = "?UPSConnection=0"
    response = api.get(f"/devices/{HOST}/ups")
    assert response.status_code == 200
    assert response.json() is None


def test_set_outlet(api: TestClient, mock_server: MockWattBoxServer) -> None:
    """Test outlet control."""
    response = api.post(f"/devices/{HOST}/outlets/2", json={"action": "off"})
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert mock_server.received[-1] == "!OutletSet=2,OFF"


def test_reboot(api: TestClient, mock_server: MockWattBoxServer) -> None:
    """Test device reboot."""
    response = api.post(f"/devices/{HOST}/reboot")
    assert response.status_code == 200
    assert response.json() == {"host": HOST, "command": "reboot", "success": True}
    assert mock_server.received[-1] == "!Reboot"


def test_unmanaged_host(api: TestClient) -> None:
    """Test unknown devices are 404."""
    assert api.get("/devices/10.9.9.9/info").status_code == 404
    assert api.post("/devices/10.9.9.9/reboot").status_code == 404


def test_invalid_outlet_action(api: TestClient) -> None:
    """Test request validation and argument errors are 422."""
    assert api.post(f"/devices/{HOST}/outlets/1", json={"action": "explode"}).status_code == 422
    assert api.post(f"/devices/{HOST}/outlets/0", json={"action": "on"}).status_code == 422


def test_protocol_error(api: TestClient, mock_server: MockWattBoxServer) -> None:
    """Test #Error maps to 502."""
    mock_server.replies["?PowerStatus"] = "#Error"
    response = api.get(f"/devices/{HOST}/power")
    assert response.status_code == 502
    assert "#Error" in response.json()["detail"]


def test_timeout(mock_server: MockWattBoxServer) -> None:
    """Test a missing reply maps to 504."""
    mock_server.replies["?Model"] = None
    config = WattBoxConfig(
        devices={HOST: WattBoxDeviceConfig(host=HOST, port=mock_server.actual_port, timeout=0.3)}
    )
    with TestClient(create_app(config)) as api:
        response = api.get(f"/devices/{HOST}/info")
    assert response.status_code == 504


def test_not_connected() -> None:
    """Test requests to a disconnected device are 503."""
    with MockWattBoxServer() as server:
        port = server.actual_port
    config = WattBoxConfig(
        devices={
            HOST: WattBoxDeviceConfig(host=HOST, port=port, timeout=0.5, max_reconnect_attempts=0)
        }
    )
    with TestClient(create_app(config)) as api:
        assert api.get(f"/devices/{HOST}/info").status_code == 503
        assert api.get(f"/devices/{HOST}/status").json()["connected"] is False


def test_connect_and_disconnect(mock_server: MockWattBoxServer) -> None:
    """Test adding and removing devices at runtime."""
    config = WattBoxConfig(default_port=mock_server.actual_port, default_timeout=2.0)
    with TestClient(create_app(config)) as api:
        assert api.get("/devices").json()["total"] == 0

        response = api.post(f"/devices/{HOST}/connect")
        assert response.status_code == 200
        assert api.get(f"/devices/{HOST}/status").json()["connected"] is True

        response = api.delete(f"/devices/{HOST}/disconnect")
        assert response.status_code == 200
        assert api.get(f"/devices/{HOST}/status").status_code == 404


@pytest.fixture
def api(mock_server: MockWattBoxServer) -> TestClient:
    """Create API test client connected to the mock server."""
    config = WattBoxConfig(
        devices={HOST: WattBoxDeviceConfig(host=HOST, port=mock_server.actual_port, timeout=2.0)}
    )
    with TestClient(create_app(config)) as client:
        yield client


@pytest.fixture
def mock_server() -> MockWattBoxServer:
    """Create mock WattBox server fixture."""
    server = MockWattBoxServer()
    server.start()
    yield server
    server.stop()
