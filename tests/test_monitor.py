"""
Tests for the LogcatMonitor host context
"""

import time

import pytest

from logcat_monitor.config import MonitorConfig
from logcat_monitor.log_parser import Severity
from logcat_monitor.monitor import ADB_NOT_FOUND_MESSAGE, LogcatMonitor, MonitorSnapshot

from conftest import PIXEL_PROPS, wait_until


LOG_LINES = (
    "05-12 10:22:33.100 I/Unity: Player started",
    "05-12 10:22:33.200 E/Unity: NullReferenceException",
    "05-12 10:22:33.300 W/Unity: low memory",
)


def discover(monitor: LogcatMonitor, timeout: float = 10.0) -> MonitorSnapshot:
    deadline = time.monotonic() + timeout
    snapshot = monitor.tick()
    while snapshot.discovering:
        assert time.monotonic() < deadline
        snapshot = monitor.tick()
    return snapshot


@pytest.fixture
def two_device_adb(fake_adb_factory):
    return fake_adb_factory(
        devices={"emulator-5554": PIXEL_PROPS, "R58M": {"ro.product.model": "Galaxy"}},
        logcat_lines=LOG_LINES,
    )


@pytest.fixture
def monitor(two_device_adb):
    monitor = LogcatMonitor(adb_path=two_device_adb.path)
    yield monitor
    monitor.shutdown()


class TestDevices:
    """Tests for device refresh and selection"""

    def test_initial_snapshot(self, monitor) -> None:
        snapshot = monitor.tick()

        assert snapshot.rows == []
        assert snapshot.devices == []
        assert snapshot.selected_device is None
        assert snapshot.only_unity is True
        assert not snapshot.can_start
        assert snapshot.can_refresh_devices

    def test_refresh_through_ticks(self, monitor) -> None:
        assert monitor.refresh_devices() is True

        snapshot = discover(monitor)

        assert [d.id for d in snapshot.devices] == ["emulator-5554", "R58M"]
        assert snapshot.selected_device.id == "emulator-5554"
        assert snapshot.can_start
        assert snapshot.status_message == ""

    def test_select_device(self, monitor) -> None:
        monitor.refresh_devices()
        discover(monitor)

        assert monitor.select_device("R58M") is True
        assert monitor.selected_device.id == "R58M"
        assert monitor.select_device(0) is True
        assert monitor.selected_device.id == "emulator-5554"
        assert monitor.select_device("unknown") is False
        assert monitor.select_device(5) is False
        assert monitor.selected_device.id == "emulator-5554"

    def test_selection_survives_refresh(self, monitor) -> None:
        monitor.refresh_devices()
        discover(monitor)
        monitor.select_device("R58M")

        monitor.refresh_devices()
        discover(monitor)

        assert monitor.selected_device.id == "R58M"

    def test_no_devices_message(self, fake_adb_factory) -> None:
        monitor = LogcatMonitor(adb_path=fake_adb_factory(devices={}).path)
        monitor.refresh_devices()

        snapshot = discover(monitor)

        assert snapshot.devices == []
        assert snapshot.status_message == "No devices found"

    def test_adb_not_found(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("ANDROID_SDK_ROOT", raising=False)
        monkeypatch.delenv("ANDROID_HOME", raising=False)
        monkeypatch.setenv("PATH", str(tmp_path))

        monitor = LogcatMonitor(MonitorConfig())

        assert monitor.adb_path is None
        assert monitor.status_message == ADB_NOT_FOUND_MESSAGE
        assert monitor.refresh_devices() is False
        snapshot = monitor.tick()
        assert not snapshot.discovering
        assert snapshot.status_message == ADB_NOT_FOUND_MESSAGE


class TestStreaming:
    """Tests for streaming through the monitor"""

    def test_start_requires_device(self, monitor) -> None:
        assert monitor.start_streaming() is False
        assert monitor.status_message == "No device selected"

    def test_stream_into_view(self, monitor, two_device_adb) -> None:
        monitor.refresh_devices()
        discover(monitor)

        assert monitor.start_streaming() is True
        assert wait_until(lambda: monitor.tick().matching_count >= 4)

        snapshot = monitor.tick()
        assert snapshot.streaming
        assert not snapshot.can_start
        assert not snapshot.can_refresh_devices
        assert "-s emulator-5554 logcat -v time -s Unity" in two_device_adb.calls

        monitor.toggle_severity(Severity.ERROR)
        snapshot = monitor.tick()
        assert [r.message for r in snapshot.rows] == ["Unity: NullReferenceException"]
        assert snapshot.filter.severities == {Severity.ERROR}

    def test_filter_text(self, monitor) -> None:
        monitor.refresh_devices()
        discover(monitor)
        monitor.start_streaming()
        assert wait_until(lambda: monitor.tick().matching_count >= 4)

        monitor.set_filter_text("MEMORY")
        assert [r.message for r in monitor.tick().rows] == ["Unity: low memory"]

        monitor.set_filter_text("me")
        assert monitor.tick().matching_count >= 4

    def test_only_unity_locked_while_streaming(self, monitor, two_device_adb) -> None:
        monitor.refresh_devices()
        discover(monitor)

        assert monitor.set_only_unity(False) is True
        monitor.start_streaming()

        assert monitor.set_only_unity(True) is False
        assert monitor.only_unity is False
        assert monitor.refresh_devices() is False
        assert wait_until(lambda: "-s emulator-5554 logcat -v time" in two_device_adb.calls)

    def test_toggle_streaming(self, monitor) -> None:
        monitor.refresh_devices()
        discover(monitor)

        assert monitor.toggle_streaming() is True
        assert monitor.toggle_streaming() is False
        assert not monitor.session.process_alive

    def test_clear(self, monitor) -> None:
        monitor.refresh_devices()
        discover(monitor)
        monitor.start_streaming()
        assert wait_until(lambda: monitor.tick().matching_count >= 4)
        monitor.stop_streaming()

        monitor.clear()

        snapshot = monitor.tick()
        assert snapshot.rows == []
        assert snapshot.matching_count == 0

    def test_stream_exit_reported(self, fake_adb_factory) -> None:
        adb = fake_adb_factory(
            devices={"emulator-5554": PIXEL_PROPS},
            logcat_lines=LOG_LINES,
            logcat_keeps_running=False,
        )
        monitor = LogcatMonitor(adb_path=adb.path)
        monitor.refresh_devices()
        discover(monitor)
        monitor.start_streaming()

        assert wait_until(lambda: not monitor.tick().streaming)

        snapshot = monitor.tick()
        assert "exited" in snapshot.status_message
        assert snapshot.can_start
        assert snapshot.matching_count >= 3

    def test_display_limit(self, fake_adb_factory) -> None:
        lines = tuple(f"05-12 10:22:33.{i:03d} D/Unity: frame {i}" for i in range(50))
        adb = fake_adb_factory(devices={"emulator-5554": {}}, logcat_lines=lines)
        config = MonitorConfig()
        config.buffer.capacity = 30
        config.buffer.display_limit = 10
        monitor = LogcatMonitor(config, adb_path=adb.path)
        monitor.toggle_severity(Severity.DEBUG)
        monitor.refresh_devices()
        discover(monitor)
        monitor.start_streaming()
        try:
            assert wait_until(lambda: monitor.tick().buffer_revision >= 51)
            snapshot = monitor.tick()
        finally:
            monitor.shutdown()

        assert len(monitor.buffer) == 30
        assert len(snapshot.rows) == 10
        assert all(r.severity is Severity.DEBUG for r in snapshot.rows)
        assert snapshot.rows[-1].message == "Unity: frame 49"

    def test_shutdown_is_idempotent(self, monitor) -> None:
        monitor.refresh_devices()
        monitor.shutdown()
        monitor.shutdown()

        snapshot = monitor.tick()
        assert not snapshot.streaming
        assert not snapshot.discovering


class TestFilters:
    """Tests for filter updates"""

    def test_set_severities_collapses_duplicates(self, monitor) -> None:
        monitor.set_filter_text("unity")
        monitor.set_severities(["E", "e", Severity.ERROR])

        assert monitor.filter.severities == {Severity.ERROR}
        assert monitor.filter.substring == "unity"

        monitor.set_severities([])
        assert monitor.filter.severities == frozenset()
