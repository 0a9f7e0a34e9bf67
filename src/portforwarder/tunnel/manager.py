"""Tunnel manager: operator actions and reconciliation against configuration."""

import threading
from collections.abc import Iterable

from pydantic import BaseModel, Field

from ..common.logging import get_logger
from ..common.utils import DEFAULT_KUBECTL
from .exceptions import DuplicateTunnelError, TunnelNotFoundError
from .models import TunnelSpec, TunnelView
from .process import STOP_TIMEOUT
from .registry import TunnelRegistry
from .tunnel import Tunnel

logger = get_logger(__name__)


class ReconcileResult(BaseModel):
    """What a reconciliation pass changed."""

    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    started: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class TunnelManager:
    """Owns the tunnel registry and every operation that mutates it.

    Operator actions, additions, removals and reconciliation are serialized by
    one lock and look tunnels up only after taking it, so an action racing a
    reload either sees the tunnel registered or fails with not found.
    Listing and lookups do not take the lock.
    """

    def __init__(
        self,
        kubectl: str = DEFAULT_KUBECTL,
        registry: TunnelRegistry | None = None,
        stop_timeout: float = STOP_TIMEOUT,
    ):
        """Initialize tunnel manager.

        Args:
            kubectl: kubectl binary name or path used to launch tunnels
            registry: Registry to manage, a new empty one if None
            stop_timeout: Seconds to wait for a stopping process
        """
        self.kubectl = kubectl
        self.registry = registry if registry is not None else TunnelRegistry()
        self.stop_timeout = stop_timeout
        self._mutation_lock = threading.RLock()

    def create_tunnel(self, spec: TunnelSpec) -> Tunnel:
        """Build the live entity for a spec (not registered)."""
        return Tunnel(spec, kubectl=self.kubectl, stop_timeout=self.stop_timeout)

    def add_tunnel(self, spec: TunnelSpec) -> Tunnel:
        """Register a tunnel and start it if it is marked start-on-startup.

        Raises:
            DuplicateTunnelError: If a tunnel with the same identity exists
        """
        with self._mutation_lock:
            tunnel = self.create_tunnel(spec)
            self.registry.add_tunnel(tunnel)
            if spec.start_on_startup:
                tunnel.start()
            logger.info("Added tunnel", tunnel=spec.label, tunnel_id=tunnel.id)
            return tunnel

    def remove_tunnel(self, tunnel_id: str) -> Tunnel:
        """Retire a tunnel and drop it from the registry.

        A retired tunnel refuses later starts, including health check restarts
        already in flight.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        with self._mutation_lock:
            tunnel = self.registry.require_tunnel(tunnel_id)
            tunnel.retire()
            self.registry.remove_tunnel(tunnel_id)
            logger.info("Removed tunnel", tunnel=tunnel.spec.label, tunnel_id=tunnel_id)
            return tunnel

    def start_tunnel(self, tunnel_id: str) -> bool:
        """Start a stopped tunnel; a started one is left as is.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        with self._mutation_lock:
            tunnel = self.registry.require_tunnel(tunnel_id)
            if tunnel.is_started():
                logger.debug("Tunnel already started", tunnel_id=tunnel_id)
                return True
            return tunnel.start()

    def stop_tunnel(self, tunnel_id: str) -> bool:
        """Stop a tunnel; health checks skip it until it is started again.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        with self._mutation_lock:
            tunnel = self.registry.require_tunnel(tunnel_id)
            return tunnel.stop()

    def restart_tunnel(self, tunnel_id: str) -> bool:
        """Stop then start a tunnel, whatever state it is in.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        with self._mutation_lock:
            tunnel = self.registry.require_tunnel(tunnel_id)
            tunnel.stop()
            return tunnel.start()

    def get_tunnel(self, tunnel_id: str) -> TunnelView:
        """Read-only view of one tunnel.

        Raises:
            TunnelNotFoundError: If tunnel not found
        """
        return self.registry.require_tunnel(tunnel_id).view()

    def list_tunnels(self) -> list[TunnelView]:
        """Read-only views of every tunnel ordered by identity."""
        return [tunnel.view() for tunnel in self.registry.list_tunnels()]

    def reconcile(self, desired: Iterable[TunnelSpec]) -> ReconcileResult:
        """Converge the registry on the desired tunnel specs.

        Tunnels whose identity is gone are stopped and removed, new identities
        are added (and started when marked start-on-startup), everything else
        keeps its process. Kept tunnels pick up changed descriptive fields
        (type, database, start-on-startup) without a restart. A spec repeating
        an identity already present is reported as a conflict.
        """
        result = ReconcileResult()
        with self._mutation_lock:
            desired_specs: dict[str, TunnelSpec] = {}
            for spec in desired:
                if spec.id in desired_specs:
                    logger.warning(
                        "Duplicate tunnel in configuration",
                        tunnel=spec.label,
                        tunnel_id=spec.id,
                    )
                    result.conflicts.append(spec.id)
                    continue
                desired_specs[spec.id] = spec

            current_ids = self.registry.ids()

            for tunnel_id in sorted(current_ids - desired_specs.keys()):
                try:
                    self.remove_tunnel(tunnel_id)
                    result.removed.append(tunnel_id)
                except TunnelNotFoundError:
                    logger.warning("Tunnel vanished during reload", tunnel_id=tunnel_id)

            for tunnel_id, spec in desired_specs.items():
                if tunnel_id in current_ids:
                    existing = self.registry.get_tunnel(tunnel_id)
                    if existing is not None and existing.update_spec(spec):
                        result.updated.append(tunnel_id)
                    else:
                        result.unchanged.append(tunnel_id)
                    continue
                try:
                    tunnel = self.add_tunnel(spec)
                except DuplicateTunnelError:
                    logger.warning("Tunnel already registered", tunnel_id=tunnel_id)
                    result.conflicts.append(tunnel_id)
                    continue
                result.added.append(tunnel_id)
                if tunnel.is_started():
                    result.started.append(tunnel_id)

        logger.info(
            "Reconciled tunnels",
            added=len(result.added),
            removed=len(result.removed),
            unchanged=len(result.unchanged),
            conflicts=len(result.conflicts),
        )
        return result

    def shutdown_all(self) -> bool:
        """Stop every started tunnel; tunnels stay registered.

        Returns:
            True if all processes exited within their stop timeout
        """
        success = True
        for tunnel in self.registry.list_tunnels(started=True):
            try:
                if not tunnel.stop():
                    success = False
            except Exception as e:
                logger.error("Error stopping tunnel", tunnel_id=tunnel.id, error=str(e))
                success = False

        logger.info("Shutdown all tunnels", success=success)
        return success
