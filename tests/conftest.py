"""Shared pytest fixtures for port-forwarder tests."""

import io
from unittest.mock import Mock, patch

import pytest

from portforwarder.tunnel.models import TunnelSpec


@pytest.fixture
def make_spec():
    """Factory for tunnel specs with sensible defaults.

    Returns:
        Callable: Builds a TunnelSpec, keyword arguments override fields
    """

    def _make(**overrides):
        values = {
            "context": "dev",
            "target": "svc/api",
            "local_port": 8080,
            "destination_port": "80",
        }
        values.update(overrides)
        return TunnelSpec(**values)

    return _make


def new_mock_process(pid=12345):
    """Create a mock Popen object that behaves like a running process."""
    process = Mock()
    process.pid = pid
    process.poll.return_value = None  # Process is running
    process.terminate.return_value = None
    process.kill.return_value = None
    process.wait.return_value = 0
    process.returncode = None
    process.stdout = io.StringIO("")
    return process


@pytest.fixture
def mock_process():
    """Create a mock process object for testing.

    Returns:
        Mock: Mock process with common attributes
    """
    return new_mock_process()


@pytest.fixture
def mock_popen():
    """Mock subprocess.Popen for tunnel processes.

    Every call returns a fresh running mock process; all of them are kept in
    ``mock_popen.processes`` in launch order.

    Returns:
        Mock: Mocked Popen class
    """
    processes = []

    def _launch(*args, **kwargs):
        process = new_mock_process(pid=10000 + len(processes))
        processes.append(process)
        return process

    with patch("portforwarder.tunnel.process.subprocess.Popen") as popen:
        popen.side_effect = _launch
        popen.processes = processes
        yield popen


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    """Fake clock for health timestamps."""
    return FakeClock()
