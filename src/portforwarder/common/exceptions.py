"""Custom exceptions for the port-forward supervisor."""


class PortForwarderError(Exception):
    """Base exception for all port-forwarder errors."""

    pass


class ProcessError(PortForwarderError):
    """Raised when a kubectl process operation fails."""

    pass


class BinaryNotFoundError(PortForwarderError):
    """Raised when the kubectl binary is not found or not executable."""

    pass


class ConfigurationError(PortForwarderError):
    """Raised when the configuration file cannot be loaded or is invalid."""

    pass


class TunnelError(PortForwarderError):
    """Base exception for tunnel operations."""

    pass
