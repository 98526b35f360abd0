"""Device API routes."""

from collections.abc import Awaitable
from typing import TypeVar

from fastapi import APIRouter, HTTPException

from lib.wattbox.api.models import (
    ControlResponse,
    DeviceStatusResponse,
    OutletActionRequest,
    OutletsResponse,
)
from lib.wattbox.client import WattBoxClient
from lib.wattbox.exceptions import (
    ConnectionError,
    ProtocolError,
    TimeoutError,
    WattBoxError,
)
from lib.wattbox.models import OutletPowerMetrics, PowerMetrics, SystemInfo, UPSMetrics

router = APIRouter(prefix="/devices", tags=["devices"])

T = TypeVar("T")

# Store service instance (set by app)
_service = None


def set_service(service) -> None:
    """Set the WattBox service instance.

    Parameters
    ----------
    service
        WattBoxService instance
    """
    global _service
    _service = service


async def _get_client(host: str) -> WattBoxClient:
    if not _service:
        raise HTTPException(status_code=503, detail="Service not available")

    client = await _service.pool.get(host)
    if client is None:
        raise HTTPException(status_code=404, detail=f"Device {host} not managed")
    return client


async def _call(awaitable: Awaitable[T]) -> T:
    """Await a device call, mapping client errors to HTTP errors."""
    try:
        return await awaitable
    except TimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e
    except ProtocolError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ConnectionError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except WattBoxError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.get("", response_model=dict)
async def list_devices() -> dict:
    """List all managed devices.

    Returns
    -------
    dict
        List of devices
    """
    if not _service:
        raise HTTPException(status_code=503, detail="Service not available")

    status = await _service.get_status()
    connections = status["pool"]["connections"]
    devices = [{"host": host, **conn_info} for host, conn_info in connections.items()]
    return {"devices": devices, "total": len(devices)}


@router.post("/{host}/connect", response_model=dict)
async def connect_device(host: str) -> dict:
    """Add a device using configured defaults and connect it.

    Parameters
    ----------
    host : str
        Device IP address

    Returns
    -------
    dict
        Connection result
    """
    if not _service:
        raise HTTPException(status_code=503, detail="Service not available")

    client = await _call(_service.add_device(host))
    await _call(client.connect())
    return {"host": host, "status": "connected", "success": True}


@router.delete("/{host}/disconnect", response_model=dict)
async def disconnect_device(host: str) -> dict:
    """Disconnect a device and stop managing it."""
    await _get_client(host)
    await _service.pool.disconnect(host)
    return {"host": host, "status": "disconnected", "success": True}


@router.get("/{host}/status", response_model=DeviceStatusResponse)
async def get_device_status(host: str) -> DeviceStatusResponse:
    """Get device session status and last known outlet states.

    Parameters
    ----------
    host : str
        Device IP address

    Returns
    -------
    DeviceStatusResponse
        Device status
    """
    await _get_client(host)
    status = await _service.get_status()
    conn_info = status["pool"]["connections"][host]
    cached = _service.cached_outlet_status(host)
    return DeviceStatusResponse(
        host=host,
        connected=conn_info["connected"],
        phase=conn_info["phase"],
        reconnect_attempts=conn_info["reconnect_attempts"],
        outlets=cached["outlets"] if cached else None,
        info=conn_info["info"],
    )


@router.get("/{host}/info", response_model=SystemInfo)
async def get_device_info(host: str) -> SystemInfo:
    """Get firmware, model, hostname and other identity details."""
    client = await _get_client(host)
    return await _call(client.get_system_info())


@router.get("/{host}/outlets", response_model=OutletsResponse)
async def get_outlets(host: str) -> OutletsResponse:
    """Get names and states of all outlets."""
    await _get_client(host)
    outlets = await _call(_service.get_outlets(host))
    return OutletsResponse(host=host, outlets=outlets)


@router.get("/{host}/outlets/{outlet}/power", response_model=OutletPowerMetrics | None)
async def get_outlet_power(host: str, outlet: int) -> OutletPowerMetrics | None:
    """Get power readings for one outlet (not supported on WB150/250)."""
    client = await _get_client(host)
    return await _call(client.get_outlet_power_metrics(outlet))


@router.post("/{host}/outlets/{outlet}", response_model=ControlResponse)
async def set_outlet(host: str, outlet: int, request: OutletActionRequest) -> ControlResponse:
    """Apply an action to an outlet; outlet 0 with ``reset`` resets all outlets.

    Parameters
    ----------
    host : str
        Device IP address
    outlet : int
        Outlet number (1-indexed), or 0 for all outlets
    request : OutletActionRequest
        Action to apply

    Returns
    -------
    ControlResponse
        Control result
    """
    client = await _get_client(host)
    await _call(client.set_outlet_action(outlet, request.to_action()))
    return ControlResponse(host=host, command=f"outlet {outlet} {request.action}", success=True)


@router.get("/{host}/power", response_model=PowerMetrics | None)
async def get_power(host: str) -> PowerMetrics | None:
    """Get power readings for the device (not supported on WB150/250)."""
    client = await _get_client(host)
    return await _call(client.get_power_metrics())


@router.get("/{host}/ups", response_model=UPSMetrics | None)
async def get_ups(host: str) -> UPSMetrics | None:
    """Get the attached UPS status, or null if no UPS is attached."""
    client = await _get_client(host)
    if not await _call(client.get_ups_connected()):
        return None
    return await _call(client.get_ups_metrics())


@router.post("/{host}/reboot", response_model=ControlResponse)
async def reboot_device(host: str) -> ControlResponse:
    """Reboot the device; the session reconnects once it is back."""
    client = await _get_client(host)
    await _call(client.reboot())
    return ControlResponse(host=host, command="reboot", success=True)
