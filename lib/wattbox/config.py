"""Configuration management for the WattBox client."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lib.wattbox.protocol import TELNET_PORT

DEFAULT_CONFIG_FILE = "wattbox.yaml"


class WattBoxDeviceConfig(BaseModel):
    """Configuration for a single device."""

    host: str
    port: int = TELNET_PORT
    username: str = "wattbox"
    password: str = "wattbox"
    timeout: float = Field(default=5.0, gt=0)
    max_reconnect_attempts: int | None = Field(default=None, ge=0)


class WattBoxServiceConfig(BaseModel):
    """Configuration for the WattBox service and its REST API."""

    max_connections: int = 16
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    connect_on_start: bool = True


class WattBoxConfig(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="WATTBOX_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Default device settings
    default_port: int = Field(default=TELNET_PORT, description="Default telnet port")
    default_username: str = Field(default="wattbox", description="Default username")
    default_password: str = Field(default="wattbox", description="Default password")
    default_timeout: float = Field(default=5.0, description="Default request timeout in seconds")
    default_max_reconnect_attempts: int | None = Field(
        default=None, description="Default reconnect attempts (unbounded if unset)"
    )

    # Service settings
    service: WattBoxServiceConfig = Field(default_factory=WattBoxServiceConfig)

    # Devices
    devices: dict[str, WattBoxDeviceConfig] = Field(default_factory=dict)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Enable JSON logging")
    log_file: str | None = Field(default=None, description="Log file path")

    @classmethod
    def load_from_yaml(cls, path: str | Path) -> "WattBoxConfig":
        """Load configuration from YAML file.

        Device entries may omit ``host`` (the mapping key is used) and any
        setting that should fall back to the ``default_*`` values.

        Parameters
        ----------
        path : str | Path
            Path to YAML file

        Returns
        -------
        WattBoxConfig
            Loaded configuration, or defaults if the file does not exist
        """
        yaml_path = Path(path)
        if not yaml_path.exists():
            return cls()

        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}

        # Extract wattbox section if present
        wattbox_data = data.get("wattbox", data)

        devices = wattbox_data.get("devices") or {}
        wattbox_data["devices"] = {
            host: cls._device_defaults(wattbox_data, host) | (settings or {})
            for host, settings in devices.items()
        }

        return cls(**wattbox_data)

    @staticmethod
    def _device_defaults(data: dict, host: str) -> dict:
        defaults = {"host": host}
        for key in ("port", "username", "password", "timeout", "max_reconnect_attempts"):
            if f"default_{key}" in data:
                defaults[key] = data[f"default_{key}"]
        return defaults

    def get_device_config(self, host: str) -> WattBoxDeviceConfig:
        """Get device configuration.

        Parameters
        ----------
        host : str
            Device host IP

        Returns
        -------
        WattBoxDeviceConfig
            Configured device, or one built from the defaults
        """
        if host in self.devices:
            return self.devices[host]

        return WattBoxDeviceConfig(
            host=host,
            port=self.default_port,
            username=self.default_username,
            password=self.default_password,
            timeout=self.default_timeout,
            max_reconnect_attempts=self.default_max_reconnect_attempts,
        )


def load_config(config_file: str | Path | None = None) -> WattBoxConfig:
    """Load configuration from file or environment.

    Parameters
    ----------
    config_file : str | Path | None, optional
        Path to config file; falls back to ``./wattbox.yaml`` and then the
        environment, by default None

    Returns
    -------
    WattBoxConfig
        Loaded configuration
    """
    if config_file:
        return WattBoxConfig.load_from_yaml(config_file)

    if Path(DEFAULT_CONFIG_FILE).exists():
        return WattBoxConfig.load_from_yaml(DEFAULT_CONFIG_FILE)

    return WattBoxConfig()
