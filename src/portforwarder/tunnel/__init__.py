"""Tunnel lifecycle: models, process supervision, registry, health checks."""

# Exceptions
from .exceptions import DuplicateTunnelError, TunnelNotFoundError, TunnelRegistryError

# Health checks
from .health import HealthChecker

# Manager
from .manager import ReconcileResult, TunnelManager

# Models
from .models import (
    DATABASE_DRIVERS,
    DatabaseKind,
    DatabaseSpec,
    DriverDescriptor,
    TunnelSpec,
    TunnelState,
    TunnelType,
    TunnelView,
    tunnel_identity,
)

# Process management
from .process import OutputDrain, TunnelProcess

# Registry
from .registry import TunnelRegistry
from .tunnel import Tunnel

__all__ = [
    # Models
    "TunnelType",
    "TunnelState",
    "TunnelSpec",
    "TunnelView",
    "DatabaseKind",
    "DatabaseSpec",
    "DriverDescriptor",
    "DATABASE_DRIVERS",
    "tunnel_identity",
    # Entity and processes
    "Tunnel",
    "TunnelProcess",
    "OutputDrain",
    # Manager
    "TunnelManager",
    "TunnelRegistry",
    "ReconcileResult",
    "HealthChecker",
    "TunnelRegistryError",
    "DuplicateTunnelError",
    "TunnelNotFoundError",
]
