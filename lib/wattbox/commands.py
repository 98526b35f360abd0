"""Command catalog: protocol strings and reply decoders.

Decoders take the raw reply line returned by ``WattBoxSession.send_query``
and fall back to an empty value when the reply does not match.
"""

import re

from lib.wattbox.models import (
    OutletAction,
    OutletMode,
    OutletPowerMetrics,
    PowerMetrics,
    UPSMetrics,
)

# Queries
AUTO_REBOOT = "?AutoReboot"
FIRMWARE = "?Firmware"
HOSTNAME = "?Hostname"
MODEL = "?Model"
OUTLET_COUNT = "?OutletCount"
OUTLET_NAME = "?OutletName"
OUTLET_POWER_STATUS = "?OutletPowerStatus"
OUTLET_STATUS = "?OutletStatus"
POWER_STATUS = "?PowerStatus"
SERVICE_TAG = "?ServiceTag"
UPS_CONNECTION = "?UPSConnection"
UPS_STATUS = "?UPSStatus"

# Controls
REBOOT = "!Reboot"
SET_AUTO_REBOOT = "!AutoReboot"
OUTLET_SET = "!OutletSet"
OUTLET_MODE_SET = "!OutletModeSet"
OUTLET_NAME_SET = "!OutletNameSet"
OUTLET_POWER_ON_DELAY_SET = "!OutletPowerOnDelaySet"

# Notifications
OUTLET_STATUS_NOTIFICATION = "~OutletStatus"

MIN_POWER_ON_DELAY = 1
MAX_POWER_ON_DELAY = 600

_NUMBER = r"(\d+(?:\.\d+)?)"
_FLAG_RE = re.compile(r"=([01])")
_TEXT_RE = re.compile(r"=(.*)")
_INT_RE = re.compile(r"=(\d+)")
_STATES_RE = re.compile(r"=((?:[01],)*[01])")
_OUTLET_POWER_RE = re.compile(rf"=(\d+),{_NUMBER},{_NUMBER},{_NUMBER}")
_POWER_RE = re.compile(rf"={_NUMBER},{_NUMBER},{_NUMBER},([01])")
_UPS_RE = re.compile(
    r"=(\d+),(\d+),(Good|Bad),(True|False),(\d+),(True|False),(True|False)"
)


def parse_flag(reply: str) -> bool:
    """``?Name=1`` -> True."""
    match = _FLAG_RE.search(reply)
    return bool(int(match.group(1))) if match else False


def parse_text(reply: str) -> str:
    """``?Name=value`` -> ``value``."""
    match = _TEXT_RE.search(reply)
    return match.group(1) if match else ""


def parse_int(reply: str) -> int:
    match = _INT_RE.search(reply)
    return int(match.group(1)) if match else 0


def parse_outlet_states(reply: str) -> list[bool]:
    """``?OutletStatus=1,1,0,1`` (or the ``~`` notification) -> ``[True, True, False, True]``."""
    match = _STATES_RE.search(reply)
    return [bool(int(x)) for x in match.group(1).split(",")] if match else []


def parse_outlet_names(reply: str) -> list[str]:
    """``?OutletName={Router},{Modem}`` -> ``["Router", "Modem"]``."""
    body = parse_text(reply)
    return [name[1:-1] for name in body.split(",")] if body else []


def parse_outlet_power(reply: str) -> OutletPowerMetrics | None:
    match = _OUTLET_POWER_RE.search(reply)
    if not match:
        return None
    return OutletPowerMetrics(
        outlet=int(match.group(1)),
        watts=float(match.group(2)),
        amps=float(match.group(3)),
        volts=float(match.group(4)),
    )


def parse_power(reply: str) -> PowerMetrics | None:
    match = _POWER_RE.search(reply)
    if not match:
        return None
    return PowerMetrics(
        amps=float(match.group(1)),
        watts=float(match.group(2)),
        volts=float(match.group(3)),
        safe_voltage_status=bool(int(match.group(4))),
    )


def parse_ups(reply: str) -> UPSMetrics | None:
    match = _UPS_RE.search(reply)
    if not match:
        return None
    return UPSMetrics(
        battery_charge=int(match.group(1)),
        battery_load=int(match.group(2)),
        battery_healthy=match.group(3) == "Good",
        power_lost=match.group(4) == "True",
        battery_runtime=int(match.group(5)),
        alarm_enabled=match.group(6) == "True",
        alarm_muted=match.group(7) == "True",
    )


def _check_outlet(outlet: int, allow_all: bool = False) -> int:
    lowest = 0 if allow_all else 1
    if outlet < lowest:
        raise ValueError(f"Invalid outlet number: {outlet}")
    return int(outlet)


def outlet_power_status(outlet: int) -> str:
    return f"{OUTLET_POWER_STATUS}={_check_outlet(outlet)}"


def auto_reboot_set(enabled: bool) -> str:
    return f"{SET_AUTO_REBOOT}={1 if enabled else 0}"


def outlet_set(outlet: int, action: OutletAction) -> str:
    """Build ``!OutletSet``; outlet 0 addresses every outlet (RESET only)."""
    action = OutletAction(action)
    if outlet == 0 and action is not OutletAction.RESET:
        raise ValueError("Outlet 0 (all outlets) only supports RESET")
    return f"{OUTLET_SET}={_check_outlet(outlet, allow_all=True)},{action.name}"


def outlet_mode_set(outlet: int, mode: OutletMode) -> str:
    return f"{OUTLET_MODE_SET}={_check_outlet(outlet)},{int(OutletMode(mode))}"


def outlet_name_set(outlet: int, name: str) -> str:
    if "," in name:
        raise ValueError(f"Outlet name must not contain a comma: {name!r}")
    return f"{OUTLET_NAME_SET}={_check_outlet(outlet)},{name}"


def outlet_power_on_delay_set(outlet: int, delay: float) -> str:
    seconds = int(delay)
    if not MIN_POWER_ON_DELAY <= seconds <= MAX_POWER_ON_DELAY:
        raise ValueError(
            f"Power on delay must be between {MIN_POWER_ON_DELAY} and "
            f"{MAX_POWER_ON_DELAY} seconds: {delay}"
        )
    return f"{OUTLET_POWER_ON_DELAY_SET}={_check_outlet(outlet)},{seconds}"
