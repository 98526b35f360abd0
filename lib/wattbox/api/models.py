"""Pydantic models for API requests/responses."""

from typing import Literal

from pydantic import BaseModel, Field

from lib.wattbox.models import Outlet, OutletAction


class OutletActionRequest(BaseModel):
    """Request to act on an outlet."""

    action: Literal["off", "on", "toggle", "reset"] = Field(..., description="Outlet action")

    def to_action(self) -> OutletAction:
        return OutletAction[self.action.upper()]


class ControlResponse(BaseModel):
    """Result of a control command."""

    host: str = Field(..., description="Device host IP")
    command: str = Field(..., description="Control command performed")
    success: bool = Field(..., description="Whether the device acknowledged it")


class OutletsResponse(BaseModel):
    """Names and states of all outlets."""

    host: str = Field(..., description="Device host IP")
    outlets: list[Outlet] = Field(default_factory=list)


class DeviceStatusResponse(BaseModel):
    """Device session status."""

    host: str = Field(..., description="Device host IP")
    connected: bool = Field(..., description="Whether the session is ready")
    phase: str = Field(..., description="Session phase")
    reconnect_attempts: int = Field(..., description="Reconnect counter (-1 when disabled)")
    outlets: list[bool] | None = Field(default=None, description="Last known outlet states")
    info: dict = Field(default_factory=dict, description="Connection metadata")


class ServiceStatusResponse(BaseModel):
    """Service status response."""

    running: bool = Field(..., description="Whether service is running")
    pool: dict = Field(..., description="Client pool status")
