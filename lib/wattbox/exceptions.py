"""Custom exceptions for the WattBox integration client."""


class WattBoxError(Exception):
    """Base exception for all WattBox-related errors."""

    def __init__(self, message: str, device_ip: str | None = None) -> None:
        """Initialize WattBox error.

        Parameters
        ----------
        message : str
            Error message
        device_ip : str | None, optional
            Device IP address if applicable, by default None
        """
        super().__init__(message)
        self.message = message
        self.device_ip = device_ip

    def __str__(self) -> str:
        """Return string representation of error."""
        if self.device_ip:
            return f"[{self.device_ip}] {self.message}"
        return self.message


class ConnectionError(WattBoxError):
    """Raised when the transport cannot be established or drops."""

    pass


class NotConnectedError(ConnectionError):
    """Raised when a command is issued while the session is not ready."""

    pass


class AuthenticationError(WattBoxError):
    """Raised when the device rejects the login credentials."""

    pass


class TimeoutError(WattBoxError):
    """Raised when no correlated reply arrives before the deadline."""

    def __init__(
        self,
        message: str,
        device_ip: str | None = None,
        timeout: float | None = None,
        command: str | None = None,
    ) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Error message
        device_ip : str | None, optional
            Device IP address if applicable, by default None
        timeout : float | None, optional
            Timeout value in seconds, by default None
        command : str | None, optional
            Protocol message that timed out, by default None
        """
        super().__init__(message, device_ip)
        self.timeout = timeout
        self.command = command


class ProtocolError(WattBoxError):
    """Raised when the device answers with its explicit error token."""

    def __init__(
        self,
        message: str,
        device_ip: str | None = None,
        command: str | None = None,
    ) -> None:
        """Initialize protocol error.

        Parameters
        ----------
        message : str
            Error message
        device_ip : str | None, optional
            Device IP address if applicable, by default None
        command : str | None, optional
            Protocol message the device rejected, by default None
        """
        super().__init__(message, device_ip)
        self.command = command


class RequestInFlightError(WattBoxError):
    """Raised when a correlation key already has a waiting subscriber."""

    def __init__(self, key: str, device_ip: str | None = None) -> None:
        super().__init__(f"Request already in flight for {key}", device_ip)
        self.key = key
