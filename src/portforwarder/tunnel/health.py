"""Periodic health checking and automatic restart of started tunnels."""

import threading
from concurrent.futures import ThreadPoolExecutor

from ..common.logging import get_logger
from .registry import TunnelRegistry
from .tunnel import Tunnel

logger = get_logger(__name__)

DEFAULT_INTERVAL = 60.0
# Tunnels probed successfully within this many seconds are skipped
STALE_AFTER = 60.0
MAX_PROBE_WORKERS = 8


class HealthChecker:
    """Probes started tunnels on a fixed interval and restarts broken ones.

    The interval is fixed for the lifetime of a checker; to change it, stop
    this checker and start a new one. There is no backoff: a tunnel that keeps
    failing is restarted once per tick for as long as it stays started.
    """

    def __init__(
        self,
        registry: TunnelRegistry,
        interval: float = DEFAULT_INTERVAL,
        stale_after: float = STALE_AFTER,
        max_workers: int = MAX_PROBE_WORKERS,
    ):
        if interval <= 0:
            raise ValueError("Health check interval must be positive")
        self.registry = registry
        self.interval = interval
        self.stale_after = stale_after
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start the scheduler thread."""
        with self._lock:
            if self._thread is not None:
                logger.warning("Health checker already running")
                return

            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="health-checker",
                daemon=True,
            )
            self._thread.start()
        logger.info("Health checker started", interval=self.interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the scheduler and wait for an in-flight tick to finish."""
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()

        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Health checker stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.check_tunnels()
            except Exception:
                logger.exception("Health check tick failed")

    def check_tunnels(self) -> list[str]:
        """Run one round of probes.

        Returns:
            IDs of the tunnels that were restarted
        """
        candidates = [
            tunnel
            for tunnel in self.registry.list_tunnels(started=True)
            if tunnel.is_stale(self.stale_after)
        ]
        if not candidates:
            return []

        logger.debug("Checking tunnels", count=len(candidates))
        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="probe"
        ) as pool:
            results = list(pool.map(self._check_tunnel, candidates))

        return [
            tunnel.id for tunnel, restarted in zip(candidates, results) if restarted
        ]

    def _check_tunnel(self, tunnel: Tunnel) -> bool:
        if self._stop_event.is_set() or not tunnel.is_started():
            return False

        if tunnel.is_running() and tunnel.probe():
            return False

        if self._stop_event.is_set():
            return False
        logger.info(
            "Restarting unhealthy tunnel", tunnel=tunnel.spec.label, tunnel_id=tunnel.id
        )
        return tunnel.restart()
