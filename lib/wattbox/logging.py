"""Structured logging for the WattBox client."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "lib.wattbox"

# Extra record fields carried into JSON output
EXTRA_FIELDS = ("device_ip", "command", "phase", "attempt", "delay")

_logger: logging.Logger | None = None


def setup_logging(
    level: int = logging.INFO,
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Set up logging configuration.

    Parameters
    ----------
    level : int, optional
        Logging level, by default logging.INFO
    json_output : bool, optional
        Enable JSON output format, by default False
    log_file : str | None, optional
        Log file path, by default None (stderr only)
    """
    global _logger

    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(level)
    _logger.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if json_output else TextFormatter()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    _logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)


def get_logger() -> logging.Logger:
    """Get the package logger.

    Unlike the CLI and service, library use does not install handlers; the
    host application decides where records go.

    Returns
    -------
    logging.Logger
        Logger instance
    """
    if _logger is None:
        return logging.getLogger(LOGGER_NAME)
    return _logger


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters
        ----------
        record : logging.LogRecord
            Log record

        Returns
        -------
        str
            JSON-formatted log entry
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable formatter with a device prefix."""

    def __init__(self) -> None:
        """Initialize text formatter."""
        super().__init__(
            fmt="[%(asctime)s] [%(levelname)s] %(device_prefix)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text.

        Parameters
        ----------
        record : logging.LogRecord
            Log record

        Returns
        -------
        str
            Text-formatted log entry
        """
        device_ip = getattr(record, "device_ip", None)
        record.device_prefix = f"[{device_ip}] " if device_ip else ""
        return super().format(record)


def _log(level: int, message: str, device_ip: str | None, **kwargs: Any) -> None:
    extra = kwargs.copy()
    if device_ip:
        extra["device_ip"] = device_ip
    get_logger().log(level, message, extra=extra)


def log_debug(message: str, device_ip: str | None = None, **kwargs: Any) -> None:
    """Log debug message.

    Parameters
    ----------
    message : str
        Log message
    device_ip : str | None, optional
        Device IP address, by default None
    **kwargs : Any
        Additional log fields
    """
    _log(logging.DEBUG, message, device_ip, **kwargs)


def log_info(message: str, device_ip: str | None = None, **kwargs: Any) -> None:
    """Log info message."""
    _log(logging.INFO, message, device_ip, **kwargs)


def log_warn(message: str, device_ip: str | None = None, **kwargs: Any) -> None:
    """Log warning message."""
    _log(logging.WARNING, message, device_ip, **kwargs)


def log_error(message: str, device_ip: str | None = None, **kwargs: Any) -> None:
    """Log error message."""
    _log(logging.ERROR, message, device_ip, **kwargs)


def log_success(message: str, device_ip: str | None = None, **kwargs: Any) -> None:
    """Log success message."""
    _log(logging.INFO, f"SUCCESS: {message}", device_ip, **kwargs)
