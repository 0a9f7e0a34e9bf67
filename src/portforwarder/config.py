"""Configuration snapshot and YAML loader."""

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .common.utils import MAX_PORT, MIN_PORT
from .tunnel.models import TunnelSpec

logger = get_logger(__name__)

DEFAULT_PORT = 3000
DEFAULT_CONFIG_FILE = "forwards.yaml"
DEFAULT_KEEP_ALIVE = timedelta(minutes=1)
DEFAULT_REFRESH = timedelta(minutes=1)


class Configuration(BaseModel):
    """Immutable snapshot of the configuration file.

    Durations accept integer seconds or ISO 8601 strings such as ``PT30S``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    groups: tuple[str, ...] = Field(default=(), description="Known group labels")
    port_forwards: tuple[TunnelSpec, ...] = Field(
        default=(), alias="portForwards", description="Tunnels in file order"
    )
    keep_alive_interval: timedelta = Field(
        default=DEFAULT_KEEP_ALIVE,
        alias="keepAliveInterval",
        description="Health check interval",
    )
    refresh_interval: timedelta = Field(
        default=DEFAULT_REFRESH,
        alias="refreshInterval",
        description="Dashboard auto-refresh interval, zero disables it",
    )
    port: int = Field(
        default=DEFAULT_PORT, ge=MIN_PORT, le=MAX_PORT, description="Dashboard port"
    )

    @field_validator("keep_alive_interval")
    @classmethod
    def validate_keep_alive(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("keepAliveInterval must be positive")
        return v

    @field_validator("refresh_interval")
    @classmethod
    def validate_refresh(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("refreshInterval cannot be negative")
        return v

    @property
    def keep_alive_seconds(self) -> float:
        return self.keep_alive_interval.total_seconds()

    @property
    def refresh_seconds(self) -> int:
        return int(self.refresh_interval.total_seconds())


def parse_config(data: Any, default_port: int = DEFAULT_PORT) -> Configuration:
    """Validate an already parsed YAML document.

    Raises:
        ConfigurationError: If the document does not describe a configuration
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping at the top level")

    values = {key: value for key, value in data.items() if value is not None}
    values.setdefault("port", default_port)

    try:
        return Configuration.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(
    path: str | Path = DEFAULT_CONFIG_FILE, default_port: int = DEFAULT_PORT
) -> Configuration:
    """Load and validate the configuration file.

    Args:
        path: YAML file to read
        default_port: Dashboard port used when the file sets none

    Returns:
        Parsed configuration snapshot

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    config_path = Path(path)
    logger.info("Loading configuration", path=str(config_path))
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}") from e

    config = parse_config(data, default_port=default_port)
    logger.info(
        "Configuration loaded",
        tunnels=len(config.port_forwards),
        port=config.port,
        keep_alive=config.keep_alive_seconds,
    )
    return config
