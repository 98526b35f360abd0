"""Persistent-connection client for WattBox power devices.

This package speaks the WattBox telnet integration protocol over a single
long-lived session per device, for one-off scripts as well as long-running
services with a client pool and REST API.
"""

__version__ = "0.1.0"

from lib.wattbox.client import WattBoxClient
from lib.wattbox.events import (
    DiagnosticEvent,
    NotificationEvent,
    ReadyEvent,
    ReconnectEvent,
    SocketEvent,
)
from lib.wattbox.exceptions import (
    AuthenticationError,
    ConnectionError,
    NotConnectedError,
    ProtocolError,
    RequestInFlightError,
    TimeoutError,
    WattBoxError,
)
from lib.wattbox.models import OutletAction, OutletMode
from lib.wattbox.pool import ClientPool
from lib.wattbox.reconnect import ReconnectPolicy
from lib.wattbox.service import WattBoxService
from lib.wattbox.session import SessionPhase, WattBoxSession
from lib.wattbox.sync_client import SyncWattBoxClient

__all__ = [
    "WattBoxSession",
    "WattBoxClient",
    "SyncWattBoxClient",
    "ClientPool",
    "WattBoxService",
    "SessionPhase",
    "ReconnectPolicy",
    "OutletAction",
    "OutletMode",
    "DiagnosticEvent",
    "NotificationEvent",
    "ReadyEvent",
    "ReconnectEvent",
    "SocketEvent",
    "WattBoxError",
    "ConnectionError",
    "NotConnectedError",
    "AuthenticationError",
    "TimeoutError",
    "ProtocolError",
    "RequestInFlightError",
]
