"""Custom exceptions for tunnel management."""

from ..common.exceptions import TunnelError


class TunnelRegistryError(TunnelError):
    """Exception raised for tunnel registry operations."""

    pass


class DuplicateTunnelError(TunnelRegistryError):
    """Raised when a tunnel with the same identity is already registered."""

    def __init__(self, tunnel_id: str):
        super().__init__(f"Tunnel with ID '{tunnel_id}' already exists")
        self.tunnel_id = tunnel_id


class TunnelNotFoundError(TunnelRegistryError):
    """Raised when no tunnel is registered under the given identity."""

    def __init__(self, tunnel_id: str):
        super().__init__(f"Tunnel '{tunnel_id}' not found")
        self.tunnel_id = tunnel_id
