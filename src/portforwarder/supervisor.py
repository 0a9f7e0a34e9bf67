"""Top-level owner of the tunnels, the health checker and the dashboard."""

import threading
from collections.abc import Callable
from pathlib import Path

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .config import DEFAULT_CONFIG_FILE, DEFAULT_PORT, Configuration, load_config
from .dashboard import DashboardServer, create_app
from .tunnel.health import HealthChecker
from .tunnel.manager import ReconcileResult, TunnelManager
from .tunnel.registry import TunnelRegistry

logger = get_logger(__name__)

DashboardFactory = Callable[[TunnelManager, Configuration], DashboardServer]
HealthCheckerFactory = Callable[[TunnelRegistry, float], HealthChecker]


def build_dashboard(manager: TunnelManager, config: Configuration) -> DashboardServer:
    app = create_app(manager, refresh_interval=config.refresh_seconds)
    return DashboardServer(app, config.port)


def build_health_checker(registry: TunnelRegistry, interval: float) -> HealthChecker:
    return HealthChecker(registry, interval=interval)


class Supervisor:
    """Applies configuration snapshots and owns the long-lived resources.

    Every configuration change goes through :meth:`apply`, which reconciles
    the tunnels and then swaps the health checker or the dashboard when their
    settings changed. A dashboard that failed to bind is retried on every
    apply. A swap releases the old resource before creating the new one. All
    of this happens under one lock, so reloads, swaps and shutdown never
    interleave.
    """

    def __init__(
        self,
        config_path: str | Path = DEFAULT_CONFIG_FILE,
        manager: TunnelManager | None = None,
        default_port: int = DEFAULT_PORT,
        dashboard_factory: DashboardFactory = build_dashboard,
        health_checker_factory: HealthCheckerFactory = build_health_checker,
    ):
        self.config_path = Path(config_path)
        self.manager = manager if manager is not None else TunnelManager()
        self.default_port = default_port
        self._dashboard_factory = dashboard_factory
        self._health_checker_factory = health_checker_factory
        self._lock = threading.RLock()
        self.config: Configuration | None = None
        self.health_checker: HealthChecker | None = None
        self.dashboard: DashboardServer | None = None

    def start(self, config: Configuration) -> ReconcileResult:
        """Bring up the tunnels, the health checker and the dashboard."""
        logger.info("Starting supervisor", config=str(self.config_path))
        return self.apply(config)

    def apply(self, config: Configuration) -> ReconcileResult:
        """Converge everything on a new configuration snapshot."""
        with self._lock:
            previous = self.config
            result = self.manager.reconcile(config.port_forwards)
            self.config = config

            if (
                previous is None
                or self.health_checker is None
                or previous.keep_alive_interval != config.keep_alive_interval
            ):
                self._swap_health_checker(config)

            if (
                previous is None
                or self.dashboard is None
                or previous.port != config.port
                or previous.refresh_interval != config.refresh_interval
            ):
                self._swap_dashboard(config)

            return result

    def reload_config(self) -> ReconcileResult | None:
        """Re-read the configuration file and apply it.

        A file that cannot be loaded is logged and the running configuration
        stays in place.
        """
        try:
            config = load_config(self.config_path, default_port=self.default_port)
        except ConfigurationError as e:
            logger.error("Reload failed, keeping current configuration", error=str(e))
            return None
        return self.apply(config)

    def shutdown(self) -> None:
        """Stop health checks, then every tunnel, then the dashboard."""
        with self._lock:
            logger.info("Shutting down")
            if self.health_checker is not None:
                self.health_checker.stop()
                self.health_checker = None

            logger.info("Stopping tunnels")
            self.manager.shutdown_all()

            if self.dashboard is not None:
                logger.info("Stopping server")
                self.dashboard.stop()
                self.dashboard = None

    def _swap_health_checker(self, config: Configuration) -> None:
        if self.health_checker is not None:
            self.health_checker.stop()
            self.health_checker = None

        checker = self._health_checker_factory(
            self.manager.registry, config.keep_alive_seconds
        )
        checker.start()
        self.health_checker = checker

    def _swap_dashboard(self, config: Configuration) -> None:
        if self.dashboard is not None:
            self.dashboard.stop()
            self.dashboard = None

        dashboard = self._dashboard_factory(self.manager, config)
        try:
            dashboard.start()
        except OSError as e:
            logger.error("Could not start dashboard", port=config.port, error=str(e))
            return
        self.dashboard = dashboard
