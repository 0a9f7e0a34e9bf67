"""Unit tests for OutputDrain and TunnelProcess."""

import io
import subprocess
import sys
import threading
import time
from unittest.mock import Mock, patch

import pytest

from portforwarder.common.exceptions import ProcessError
from portforwarder.tunnel.process import OutputDrain, TunnelProcess


def universal_stream(data: bytes) -> io.TextIOWrapper:
    """Text stream with the same newline handling as Popen(text=True)."""
    return io.TextIOWrapper(io.BytesIO(data), newline=None)


class TestOutputDrain:
    """Test cases for OutputDrain"""

    def test_delivers_lines(self):
        """Lines split on newline or carriage return should reach the consumer"""
        lines = []
        drain = OutputDrain(
            universal_stream(b"Forwarding from 0.0.0.0:8080\r\nsecond\rthird\n"),
            lines.append,
        ).start()

        drain._thread.join(timeout=2)

        assert lines == ["Forwarding from 0.0.0.0:8080", "second", "third"]

    def test_last_line_without_newline(self):
        """A trailing partial line should still be delivered at end of stream"""
        lines = []
        drain = OutputDrain(universal_stream(b"one\ntwo"), lines.append).start()

        drain._thread.join(timeout=2)

        assert lines == ["one", "two"]

    def test_skips_blank_lines(self):
        """Blank lines should not be forwarded"""
        lines = []
        drain = OutputDrain(universal_stream(b"a\n\n\r\nb\n"), lines.append).start()

        drain._thread.join(timeout=2)

        assert lines == ["a", "b"]

    def test_closes_stream_on_exit(self):
        """The reader should close the stream when it finishes"""
        stream = universal_stream(b"done\n")
        drain = OutputDrain(stream, lambda line: None).start()

        drain._thread.join(timeout=2)

        assert stream.closed
        assert not drain.is_alive()

    def test_consumer_errors_do_not_escape(self):
        """A failing consumer should end the drain without raising"""
        consumer = Mock(side_effect=RuntimeError("boom"))
        drain = OutputDrain(universal_stream(b"x\ny\n"), consumer).start()

        drain._thread.join(timeout=2)

        assert not drain.is_alive()
        consumer.assert_called_once_with("x")

    def test_stop_discards_later_lines(self):
        """Lines read after cancellation should be dropped"""
        read_first = threading.Event()
        release = threading.Event()
        lines = []

        def blocking_lines():
            yield "first\n"
            read_first.set()
            release.wait(2)
            yield "second\n"

        drain = OutputDrain(blocking_lines(), lines.append).start()
        assert read_first.wait(2)

        drain.stop()
        release.set()
        drain._thread.join(timeout=2)

        assert drain.cancelled
        assert lines == ["first"]

    def test_stop_does_not_hang_on_blocked_reader(self):
        """Stopping should return promptly even if the reader is blocked"""
        release = threading.Event()

        def never_ending():
            release.wait(5)
            yield from ()

        drain = OutputDrain(never_ending(), lambda line: None).start()

        started = time.monotonic()
        drain.stop(timeout=0.2)
        elapsed = time.monotonic() - started
        still_reading = drain.is_alive()
        release.set()
        drain._thread.join(timeout=2)

        assert elapsed < 1.0
        assert still_reading
        assert not drain.is_alive()


class TestTunnelProcess:
    """Test cases for TunnelProcess"""

    def test_start_launches_command(self, mock_popen):
        """start() should launch the command with output piped"""
        process = TunnelProcess(["kubectl", "port-forward"], lambda line: None)

        process.start()

        mock_popen.assert_called_once_with(
            ["kubectl", "port-forward"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
        assert process.is_running()
        assert process.pid == 10000

    def test_start_failure_raises_process_error(self):
        """Launch failures should surface as ProcessError"""
        with patch(
            "portforwarder.tunnel.process.subprocess.Popen",
            side_effect=FileNotFoundError("kubectl"),
        ):
            process = TunnelProcess(["kubectl"], lambda line: None)

            with pytest.raises(ProcessError):
                process.start()

        assert not process.is_running()
        assert process.pid is None

    def test_stop_terminates_and_waits(self, mock_popen):
        """stop() should terminate the process and wait for it"""
        process = TunnelProcess(["kubectl"], lambda line: None)
        process.start()
        child = mock_popen.processes[0]

        assert process.stop(timeout=3.0) is True

        child.terminate.assert_called_once()
        child.wait.assert_called_once_with(timeout=3.0)

    def test_stop_abandons_unresponsive_process(self, mock_popen):
        """A process that ignores termination should be abandoned, not killed"""
        process = TunnelProcess(["kubectl"], lambda line: None)
        process.start()
        child = mock_popen.processes[0]
        child.wait.side_effect = subprocess.TimeoutExpired("kubectl", 10)

        assert process.stop() is False

        child.terminate.assert_called_once()
        child.kill.assert_not_called()

    def test_stop_skips_terminate_for_exited_process(self, mock_popen):
        """An already exited process should not be signalled"""
        process = TunnelProcess(["kubectl"], lambda line: None)
        process.start()
        child = mock_popen.processes[0]
        child.poll.return_value = 1

        assert process.stop() is True
        child.terminate.assert_not_called()

    def test_stop_without_start(self):
        """Stopping a never started process should be a no-op"""
        assert TunnelProcess(["kubectl"], lambda line: None).stop() is True

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    def test_stop_is_bounded_for_process_ignoring_sigterm(self):
        """stop() should return within the timeout plus a small margin"""
        ready = threading.Event()
        script = (
            "import signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(30)\n"
        )
        process = TunnelProcess(
            [sys.executable, "-c", script],
            lambda line: ready.set() if line == "ready" else None,
        )
        process.start()
        try:
            assert ready.wait(10)

            started = time.monotonic()
            exited = process.stop(timeout=0.5)
            elapsed = time.monotonic() - started

            assert exited is False
            assert elapsed < 2.0
            assert process.is_running()
        finally:
            process._process.kill()
            process._process.wait()
