"""Tests for the configuration file watcher."""

import threading
import time
from unittest.mock import Mock

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent, DirModifiedEvent

from portforwarder.watcher import ConfigFileEventHandler, ConfigWatcher


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "forwards.yaml"
    path.write_text("portForwards: []\n")
    return path


class TestConfigWatcher:
    """Test debouncing and path matching"""

    def test_matches(self, config_path):
        watcher = ConfigWatcher(config_path, Mock())

        assert watcher.matches(str(config_path))
        assert watcher.matches(str(config_path.parent / "." / "forwards.yaml"))
        assert not watcher.matches(str(config_path.parent / "other.yaml"))

    def test_burst_collapses_to_one_callback(self, config_path):
        fired = threading.Event()
        callback = Mock(side_effect=lambda: fired.set())
        watcher = ConfigWatcher(config_path, callback, debounce=0.1)

        for _ in range(5):
            watcher.notify()

        assert fired.wait(2)
        time.sleep(0.2)
        callback.assert_called_once()

    def test_callback_errors_are_logged(self, config_path):
        done = threading.Event()

        def callback():
            done.set()
            raise RuntimeError("boom")

        watcher = ConfigWatcher(config_path, callback, debounce=0.01)
        watcher.notify()

        assert done.wait(2)
        time.sleep(0.05)
        watcher.notify()
        watcher.stop()

    def test_stop_cancels_pending_callback(self, config_path):
        callback = Mock()
        watcher = ConfigWatcher(config_path, callback, debounce=0.1)

        watcher.notify()
        watcher.stop()
        time.sleep(0.2)

        callback.assert_not_called()

    def test_observer_reports_changes(self, config_path):
        fired = threading.Event()
        watcher = ConfigWatcher(config_path, fired.set, debounce=0.05)
        watcher.start()
        try:
            time.sleep(0.2)
            config_path.write_text("portForwards: []\nport: 3001\n")
            assert fired.wait(5)
        finally:
            watcher.stop()

        assert watcher.observer is None


class TestConfigFileEventHandler:
    """Test event filtering"""

    def test_modified_config_notifies(self, config_path):
        watcher = Mock()
        watcher.matches.side_effect = lambda path: path == str(config_path)
        handler = ConfigFileEventHandler(watcher)

        handler.on_any_event(FileModifiedEvent(str(config_path)))

        watcher.notify.assert_called_once()

    def test_moved_onto_config_notifies(self, config_path):
        watcher = Mock()
        watcher.matches.side_effect = lambda path: path == str(config_path)
        handler = ConfigFileEventHandler(watcher)

        handler.on_any_event(
            FileMovedEvent(str(config_path) + ".swp", str(config_path))
        )

        watcher.notify.assert_called_once()

    def test_other_files_ignored(self, config_path):
        watcher = Mock()
        watcher.matches.return_value = False
        handler = ConfigFileEventHandler(watcher)

        handler.on_any_event(FileModifiedEvent(str(config_path.parent / "x.txt")))
        handler.on_any_event(DirModifiedEvent(str(config_path.parent)))

        watcher.notify.assert_not_called()
