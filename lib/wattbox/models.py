"""Typed results for WattBox commands."""

import enum

from pydantic import BaseModel, Field


class OutletAction(enum.IntEnum):
    """Action applied to an outlet; the member name is sent on the wire."""

    OFF = 0
    ON = 1
    TOGGLE = 2
    RESET = 3


class OutletMode(enum.IntEnum):
    """Outlet operating mode; the member value is sent on the wire."""

    ENABLED = 0
    DISABLED = 1
    RESET_ONLY = 2


class OutletPowerMetrics(BaseModel):
    """Power readings for a single outlet."""

    outlet: int = Field(..., description="Outlet number (1-indexed)")
    watts: float
    amps: float
    volts: float


class PowerMetrics(BaseModel):
    """Power readings for the whole device."""

    amps: float
    watts: float
    volts: float
    safe_voltage_status: bool


class UPSMetrics(BaseModel):
    """Status of an attached UPS."""

    battery_charge: int = Field(..., description="Charge in percent")
    battery_load: int = Field(..., description="Load in percent")
    battery_healthy: bool
    power_lost: bool
    battery_runtime: int = Field(..., description="Runtime in minutes")
    alarm_enabled: bool
    alarm_muted: bool


class SystemInfo(BaseModel):
    """Identity and configuration summary of a device."""

    firmware: str
    hostname: str
    model: str
    service_tag: str
    outlet_count: int
    auto_reboot: bool


class Outlet(BaseModel):
    """Name and state of one outlet."""

    number: int = Field(..., description="Outlet number (1-indexed)")
    name: str
    on: bool
