"""Common utilities and shared functionality."""

from .exceptions import (
    BinaryNotFoundError,
    ConfigurationError,
    PortForwarderError,
    ProcessError,
    TunnelError,
)
from .logging import get_logger, setup_logging
from .utils import MAX_PORT, MIN_PORT, find_binary, format_seconds

__all__ = [
    # Exceptions
    "PortForwarderError",
    "BinaryNotFoundError",
    "ConfigurationError",
    "ProcessError",
    "TunnelError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "find_binary",
    "format_seconds",
    "MIN_PORT",
    "MAX_PORT",
]
