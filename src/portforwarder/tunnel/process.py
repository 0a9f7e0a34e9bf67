"""Process management for kubectl port-forward children."""

import subprocess
import threading
from collections.abc import Callable
from typing import IO

from ..common.exceptions import ProcessError
from ..common.logging import get_logger

logger = get_logger(__name__)

# Seconds to wait for a terminated process before abandoning it
STOP_TIMEOUT = 10.0
# Seconds to wait for the drain thread after cancelling it
DRAIN_JOIN_TIMEOUT = 0.2


class OutputDrain:
    """Reads a child's output line by line on a dedicated thread.

    Each complete line is handed to ``consumer``. The loop ends at end of
    stream or once :meth:`stop` is called; lines read after cancellation are
    dropped. The reader closes the stream on its way out.

    Cancellation is checked between lines only and the stream is never closed
    from the stopping thread. A process abandoned after a stop timeout
    therefore keeps its reader blocked until the process exits and the pipe
    hits end of stream. The reader is a daemon thread and :meth:`stop` never
    waits longer than its timeout for it.
    """

    def __init__(
        self,
        stream: IO[str],
        consumer: Callable[[str], None],
        name: str = "output-drain",
    ):
        self._stream = stream
        self._consumer = consumer
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "OutputDrain":
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            for raw in self._stream:
                if self._cancelled.is_set():
                    break
                line = raw.rstrip("\r\n")
                if line:
                    self._consumer(line)
        except (OSError, ValueError) as e:
            if not self._cancelled.is_set():
                logger.warning("Failed to read process output", error=str(e))
        except Exception as e:
            logger.error("Output consumer failed", error=str(e))
        finally:
            try:
                self._stream.close()
            except OSError as e:
                logger.debug("Failed to close process output", error=str(e))

    def stop(self, timeout: float = DRAIN_JOIN_TIMEOUT) -> None:
        """Cancel the drain and give the reader a moment to finish."""
        self._cancelled.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()


class TunnelProcess:
    """One launched kubectl port-forward process and its output drain."""

    def __init__(
        self,
        command: list[str],
        on_output: Callable[[str], None],
        name: str = "kubectl",
    ):
        """Initialize TunnelProcess with the command to run

        Args:
            command: Full argument vector, binary first
            on_output: Called with every line the process prints
            name: Thread name for the output drain
        """
        self.command = command
        self._on_output = on_output
        self._name = name
        self._process: subprocess.Popen[str] | None = None
        self._drain: OutputDrain | None = None

    def start(self) -> None:
        """Launch the process and begin draining its output

        Raises:
            ProcessError: If the process cannot be launched
        """
        logger.debug("Launching process", command=self.command)
        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            logger.error("Failed to launch process", command=self.command, error=str(e))
            raise ProcessError(f"Failed to launch {self.command[0]}: {e}") from e

        if self._process.stdout is not None:
            self._drain = OutputDrain(
                self._process.stdout, self._on_output, name=f"drain-{self._name}"
            ).start()
        logger.debug("Process launched", pid=self._process.pid)

    def stop(self, timeout: float = STOP_TIMEOUT) -> bool:
        """Terminate the process and wait a bounded time for it to exit

        The process is not killed when the wait runs out.

        Returns:
            True if the process is known to have exited, False if the wait
            was abandoned
        """
        if self._process is None:
            return True

        if self.is_running():
            self._process.terminate()
        if self._drain is not None:
            self._drain.stop()

        try:
            self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                "Process did not exit in time, abandoning it",
                pid=self._process.pid,
                timeout=timeout,
            )
            return False
        return True

    def is_running(self) -> bool:
        """Check if the process is currently alive"""
        if self._process is None:
            return False
        return self._process.poll() is None

    @property
    def pid(self) -> int | None:
        """Get process ID if launched"""
        if self._process is None:
            return None
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.returncode
