"""Tests for the HealthChecker."""

import threading
from unittest.mock import Mock, patch

import pytest

from portforwarder.tunnel.health import HealthChecker
from portforwarder.tunnel.registry import TunnelRegistry
from portforwarder.tunnel.tunnel import Tunnel


def fake_tunnel(make_spec, port, *, running=True, healthy=True, stale=True):
    """Mock tunnel with controllable health."""
    spec = make_spec(local_port=port)
    tunnel = Mock(spec=Tunnel)
    tunnel.id = spec.id
    tunnel.spec = spec
    tunnel.is_started.return_value = True
    tunnel.is_running.return_value = running
    tunnel.probe.return_value = healthy
    tunnel.is_stale.return_value = stale
    tunnel.restart.return_value = True
    return tunnel


def registry_of(*tunnels):
    registry = Mock(spec=TunnelRegistry)
    registry.list_tunnels.return_value = list(tunnels)
    return registry


class TestCheckTunnels:
    """Test a single round of health checks"""

    def test_healthy_tunnel_is_left_alone(self, make_spec):
        """A tunnel that answers its probe should not be restarted"""
        tunnel = fake_tunnel(make_spec, 8001)
        checker = HealthChecker(registry_of(tunnel))

        assert checker.check_tunnels() == []

        tunnel.probe.assert_called_once()
        tunnel.restart.assert_not_called()

    def test_failed_probe_restarts(self, make_spec):
        """A tunnel failing its probe should be restarted once"""
        tunnel = fake_tunnel(make_spec, 8001, healthy=False)
        checker = HealthChecker(registry_of(tunnel))

        assert checker.check_tunnels() == [tunnel.id]

        tunnel.restart.assert_called_once()

    def test_dead_process_restarts_without_probe(self, make_spec):
        """A dead process should be restarted without probing"""
        tunnel = fake_tunnel(make_spec, 8001, running=False)
        checker = HealthChecker(registry_of(tunnel))

        assert checker.check_tunnels() == [tunnel.id]

        tunnel.probe.assert_not_called()
        tunnel.restart.assert_called_once()

    def test_fresh_tunnels_are_skipped(self, make_spec):
        """Tunnels probed recently should not be probed again"""
        tunnel = fake_tunnel(make_spec, 8001, stale=False)
        checker = HealthChecker(registry_of(tunnel), stale_after=45)

        assert checker.check_tunnels() == []

        tunnel.is_stale.assert_called_once_with(45)
        tunnel.probe.assert_not_called()

    def test_only_started_tunnels_are_checked(self, make_spec):
        """The registry should be asked for started tunnels only"""
        registry = registry_of()
        checker = HealthChecker(registry)

        assert checker.check_tunnels() == []

        registry.list_tunnels.assert_called_once_with(started=True)

    def test_tunnel_stopped_mid_tick_is_skipped(self, make_spec):
        """A tunnel stopped after selection should not be restarted"""
        tunnel = fake_tunnel(make_spec, 8001, healthy=False)
        tunnel.is_started.return_value = False
        checker = HealthChecker(registry_of(tunnel))

        assert checker.check_tunnels() == []

        tunnel.restart.assert_not_called()

    def test_one_restart_per_tick(self, make_spec):
        """A persistently failing tunnel should be restarted once every tick"""
        tunnel = fake_tunnel(make_spec, 8001, healthy=False)
        checker = HealthChecker(registry_of(tunnel))

        for _ in range(3):
            checker.check_tunnels()

        assert tunnel.restart.call_count == 3

    def test_mixed_tunnels(self, make_spec):
        """Only the failing tunnels should be reported"""
        good = fake_tunnel(make_spec, 8001)
        bad = fake_tunnel(make_spec, 8002, healthy=False)
        dead = fake_tunnel(make_spec, 8003, running=False)
        checker = HealthChecker(registry_of(good, bad, dead), max_workers=2)

        assert sorted(checker.check_tunnels()) == sorted([bad.id, dead.id])

    def test_real_tunnel_restart(self, make_spec, mock_popen):
        """A started tunnel with nothing listening should get a new process"""
        registry = TunnelRegistry()
        tunnel = Tunnel(make_spec(local_port=8001), probe_timeout=0.1)
        registry.add_tunnel(tunnel)
        tunnel.start()
        checker = HealthChecker(registry)

        with patch(
            "portforwarder.tunnel.tunnel.socket.create_connection",
            side_effect=ConnectionRefusedError(),
        ):
            assert checker.check_tunnels() == [tunnel.id]

        assert mock_popen.call_count == 2
        assert tunnel.is_started()


class TestHealthCheckerScheduler:
    """Test the scheduler thread"""

    def test_rejects_non_positive_interval(self):
        """Intervals must be positive"""
        with pytest.raises(ValueError):
            HealthChecker(registry_of(), interval=0)

    def test_start_and_stop(self):
        """The scheduler thread should run until stopped"""
        checker = HealthChecker(registry_of(), interval=30)

        checker.start()
        assert checker.running

        checker.stop(timeout=2)
        assert not checker.running

    def test_start_twice(self):
        """A second start should not spawn another thread"""
        checker = HealthChecker(registry_of(), interval=30)
        checker.start()
        thread = checker._thread

        checker.start()

        assert checker._thread is thread
        checker.stop(timeout=2)

    def test_ticks_run_on_interval(self):
        """check_tunnels should be called on every tick"""
        checker = HealthChecker(registry_of(), interval=0.01)
        ticked = threading.Event()
        calls = []

        def tick():
            calls.append(1)
            if len(calls) >= 3:
                ticked.set()
            return []

        with patch.object(checker, "check_tunnels", side_effect=tick):
            checker.start()
            assert ticked.wait(2)
            checker.stop(timeout=2)

        assert len(calls) >= 3

    def test_tick_errors_do_not_stop_scheduler(self):
        """An exception in one tick should not end the loop"""
        checker = HealthChecker(registry_of(), interval=0.01)
        recovered = threading.Event()
        calls = []

        def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            recovered.set()
            return []

        with patch.object(checker, "check_tunnels", side_effect=tick):
            checker.start()
            assert recovered.wait(2)
            checker.stop(timeout=2)

    def test_stop_without_start(self):
        """Stopping an idle checker should be harmless"""
        HealthChecker(registry_of()).stop()
