"""Supervisor for kubectl port-forward tunnels."""

# Common utilities
from .common.exceptions import (
    BinaryNotFoundError,
    ConfigurationError,
    PortForwarderError,
    ProcessError,
    TunnelError,
)
from .common.logging import get_logger, setup_logging

# Configuration
from .config import Configuration, load_config, parse_config

# Supervisor
from .supervisor import Supervisor

# Tunnel management
from .tunnel import (
    DatabaseKind,
    DatabaseSpec,
    DuplicateTunnelError,
    HealthChecker,
    ReconcileResult,
    Tunnel,
    TunnelManager,
    TunnelNotFoundError,
    TunnelRegistry,
    TunnelRegistryError,
    TunnelSpec,
    TunnelState,
    TunnelType,
    TunnelView,
)
from .version import __version__
from .watcher import ConfigWatcher

# Setup logging on package initialization
setup_logging(level="INFO")

# Package level logger
logger = get_logger(__name__)


__all__ = [
    # Configuration
    "Configuration",
    "load_config",
    "parse_config",
    # Supervisor
    "Supervisor",
    "ConfigWatcher",
    # Tunnel management
    "Tunnel",
    "TunnelSpec",
    "TunnelView",
    "TunnelType",
    "TunnelState",
    "DatabaseKind",
    "DatabaseSpec",
    "TunnelManager",
    "TunnelRegistry",
    "ReconcileResult",
    "HealthChecker",
    # Exceptions
    "PortForwarderError",
    "BinaryNotFoundError",
    "ConfigurationError",
    "ProcessError",
    "TunnelError",
    "TunnelRegistryError",
    "DuplicateTunnelError",
    "TunnelNotFoundError",
    # Logging
    "get_logger",
    "setup_logging",
    "__version__",
]
