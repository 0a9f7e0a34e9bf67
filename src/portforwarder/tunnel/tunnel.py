"""Live tunnel entity and its process supervision state machine."""

import functools
import socket
import threading
import time
from collections.abc import Callable
from typing import Any

from ..common.exceptions import ProcessError
from ..common.logging import get_logger
from .models import TunnelSpec, TunnelState, TunnelView
from .process import STOP_TIMEOUT, TunnelProcess

# Seconds allowed for the TCP connect of a health probe
PROBE_TIMEOUT = 2.0
PROBE_HOST = "127.0.0.1"


@functools.total_ordering
class Tunnel:
    """A configured forward together with its runtime state.

    Identity comes from the spec and never changes. The process handle, the
    health timestamp and the state are runtime only. ``start``, ``stop`` and
    ``restart`` are serialized per tunnel. Reads and probes only take a short
    state lock, so they never wait for a process to exit. A retired tunnel
    (one removed from the registry) refuses to start again.
    """

    def __init__(
        self,
        spec: TunnelSpec,
        kubectl: str = "kubectl",
        clock: Callable[[], float] = time.monotonic,
        stop_timeout: float = STOP_TIMEOUT,
        probe_timeout: float = PROBE_TIMEOUT,
    ):
        self.spec = spec
        self.id = spec.id
        self._kubectl = kubectl
        self._clock = clock
        self._stop_timeout = stop_timeout
        self._probe_timeout = probe_timeout
        self._lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._process: TunnelProcess | None = None
        self._last_check: float | None = None
        self._state = TunnelState.STOPPED
        self._retired = False
        self.log = get_logger(__name__).bind(tunnel=spec.label, tunnel_id=self.id)

    def start(self) -> bool:
        """Launch the port-forward process.

        Returns:
            True if a process is attached afterwards, False if launching failed
            or the tunnel is retired
        """
        with self._lock:
            if self._retired:
                self.log.warning("Not starting retired tunnel")
                return False
            if self._process is not None:
                self.log.debug("Tunnel already started")
                return True

            with self._state_lock:
                self._state = TunnelState.STARTING
            process = TunnelProcess(
                self.spec.command(self._kubectl),
                self._handle_output,
                name=self.id[:8],
            )
            try:
                process.start()
            except ProcessError as e:
                with self._state_lock:
                    self._state = TunnelState.STOPPED
                self.log.error("Failed to start tunnel", error=str(e))
                return False

            with self._state_lock:
                self._process = process
                self._state = TunnelState.STARTED_UNKNOWN
            self.log.info("Started tunnel", pid=process.pid)
            return True

    def stop(self) -> bool:
        """Stop the process, waiting at most the stop timeout.

        The handle is detached and the state set to stopped before waiting,
        so readers see a stopped tunnel while the old process winds down.

        Returns:
            True if the process is known to have exited
        """
        with self._lock:
            with self._state_lock:
                process = self._process
                self._process = None
                self._state = TunnelState.STOPPED
            if process is None:
                return True

            try:
                running = process.is_running()
                if running:
                    self.log.info("Stopping tunnel", pid=process.pid)
                exited = process.stop(self._stop_timeout)
            except Exception as e:
                self.log.error("Error stopping tunnel", error=str(e))
                return False

            if not exited:
                self.log.warning("Tunnel process may be orphaned", pid=process.pid)
            elif running:
                self.log.info("Tunnel stopped")
            return exited

    def retire(self) -> bool:
        """Stop the tunnel for good; later starts and restarts are refused."""
        with self._lock:
            self._retired = True
            return self.stop()

    @property
    def retired(self) -> bool:
        return self._retired

    def update_spec(self, spec: TunnelSpec) -> bool:
        """Swap in a spec with the same identity, keeping the process.

        Returns:
            True if any descriptive field changed
        """
        if spec.id != self.id:
            raise ValueError(f"Spec {spec.id} does not belong to tunnel {self.id}")
        with self._lock:
            if spec.model_dump() == self.spec.model_dump():
                return False
            self.spec = spec
        self.log.info("Updated tunnel settings")
        return True

    def restart(self) -> bool:
        """Replace the process of a started tunnel with a fresh one.

        A tunnel that is not started (for example stopped by the operator
        while a health check was in flight) is left alone.

        Returns:
            True if a new process was launched
        """
        with self._lock:
            if self._process is None:
                return False
            self.log.info("Restarting tunnel")
            self.stop()
            return self.start()

    def probe(self) -> bool:
        """Check that something accepts connections on the local port.

        Success is the only thing that moves the health timestamp.
        """
        try:
            with socket.create_connection(
                (PROBE_HOST, self.spec.local_port), timeout=self._probe_timeout
            ):
                pass
        except OSError as e:
            self.log.debug("Probe failed", error=str(e))
            with self._state_lock:
                if self._process is not None:
                    self._state = TunnelState.STARTED_UNHEALTHY
            return False

        with self._state_lock:
            self._last_check = self._clock()
            if self._process is not None:
                self._state = TunnelState.STARTED_HEALTHY
        self.log.debug("Probe succeeded")
        return True

    def is_started(self) -> bool:
        """True while a process handle is attached, alive or not."""
        return self._process is not None

    def is_running(self) -> bool:
        """True while the attached process is alive at the OS level."""
        process = self._process
        return process is not None and process.is_running()

    @property
    def state(self) -> TunnelState:
        with self._state_lock:
            process, state = self._process, self._state
        if process is not None and not process.is_running():
            return TunnelState.STARTED_UNHEALTHY
        return state

    @property
    def last_check(self) -> float | None:
        """Clock reading of the last successful probe, None if never."""
        return self._last_check

    def last_checked_ago(self) -> float | None:
        last_check = self._last_check
        if last_check is None:
            return None
        return max(0.0, self._clock() - last_check)

    def is_stale(self, max_age: float) -> bool:
        """True if the last successful probe is older than ``max_age`` seconds."""
        ago = self.last_checked_ago()
        return ago is None or ago > max_age

    def view(self) -> TunnelView:
        spec = self.spec
        return TunnelView(
            id=self.id,
            group=spec.group,
            context=spec.context,
            target=spec.target,
            namespace=spec.namespace,
            local_port=spec.local_port,
            destination_port=spec.destination_port,
            start_on_startup=spec.start_on_startup,
            state=self.state,
            is_running=self.is_running(),
            last_checked_ago=self.last_checked_ago(),
            type=spec.type,
            database=spec.database,
        )

    def _handle_output(self, line: str) -> None:
        self.log.info(line)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Tunnel):
            return NotImplemented
        return self.id == other.id

    def __lt__(self, other: "Tunnel") -> bool:
        if not isinstance(other, Tunnel):
            return NotImplemented
        return self.id < other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Tunnel(id={self.id!r}, {self.spec.label}, state={self.state.value})"
