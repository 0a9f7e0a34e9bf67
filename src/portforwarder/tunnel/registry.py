"""Tunnel registry for managing live tunnels."""

import logging
import threading

from .exceptions import DuplicateTunnelError, TunnelNotFoundError
from .tunnel import Tunnel

logger = logging.getLogger(__name__)


class TunnelRegistry:
    """Thread-safe in-memory store of live tunnels keyed by identity.

    Mutations are serialized by a lock. Readers get sorted list snapshots and
    never the underlying mapping.
    """

    def __init__(self) -> None:
        self._tunnels: dict[str, Tunnel] = {}
        self._lock = threading.Lock()

    def add_tunnel(self, tunnel: Tunnel) -> None:
        """Add tunnel to registry.

        Args:
            tunnel: Tunnel to add

        Raises:
            DuplicateTunnelError: If a tunnel with the same ID already exists
        """
        with self._lock:
            if tunnel.id in self._tunnels:
                raise DuplicateTunnelError(tunnel.id)
            self._tunnels[tunnel.id] = tunnel
        logger.info(f"Added tunnel {tunnel.id} to registry")

    def remove_tunnel(self, tunnel_id: str) -> Tunnel:
        """Remove tunnel from registry.

        Args:
            tunnel_id: ID of tunnel to remove

        Returns:
            Removed tunnel

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        with self._lock:
            tunnel = self._tunnels.pop(tunnel_id, None)
        if tunnel is None:
            raise TunnelNotFoundError(tunnel_id)
        logger.info(f"Removed tunnel {tunnel_id} from registry")
        return tunnel

    def get_tunnel(self, tunnel_id: str) -> Tunnel | None:
        """Get tunnel by ID, None if unknown."""
        with self._lock:
            return self._tunnels.get(tunnel_id)

    def require_tunnel(self, tunnel_id: str) -> Tunnel:
        """Get tunnel by ID.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        tunnel = self.get_tunnel(tunnel_id)
        if tunnel is None:
            raise TunnelNotFoundError(tunnel_id)
        return tunnel

    def list_tunnels(self, started: bool | None = None) -> list[Tunnel]:
        """Snapshot of the tunnels ordered by identity.

        Args:
            started: Only started (True) or only stopped (False) tunnels

        Returns:
            List of matching tunnels
        """
        with self._lock:
            tunnels = sorted(self._tunnels.values())

        if started is not None:
            tunnels = [t for t in tunnels if t.is_started() == started]

        return tunnels

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._tunnels)

    def clear(self) -> list[Tunnel]:
        """Remove all tunnels and return them."""
        with self._lock:
            tunnels = sorted(self._tunnels.values())
            self._tunnels.clear()
        logger.info("Cleared all tunnels from registry")
        return tunnels

    def __contains__(self, tunnel_id: object) -> bool:
        with self._lock:
            return tunnel_id in self._tunnels

    def __len__(self) -> int:
        with self._lock:
            return len(self._tunnels)
