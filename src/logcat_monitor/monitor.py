"""
LOGCAT Monitor Host Context

LogcatMonitor bundles everything a front end needs: the log buffer, the
streaming session, device discovery, the current filter and the device
list. A front end constructs one instance, calls tick() periodically and
renders the returned MonitorSnapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from logcat_monitor.config import MonitorConfig, resolve_adb_path
from logcat_monitor.device_discovery import DeviceDiscovery, DeviceInfo
from logcat_monitor.log_buffer import LogBuffer
from logcat_monitor.log_filter import FilterSpec, display_window, recompute
from logcat_monitor.log_parser import LogRecord, Severity
from logcat_monitor.process_runner import ProcessRunner, SpawnError
from logcat_monitor.streaming import StreamingSession


logger = logging.getLogger(__name__)


ADB_NOT_FOUND_MESSAGE = (
    "adb not found: set adb.path in the config, ANDROID_SDK_ROOT, or put adb on PATH"
)


@dataclass(frozen=True)
class MonitorSnapshot:
    """
    Everything a front end renders for one tick.

    Attributes:
        rows: Most recent matching records (display window), oldest first
        matching_count: Size of the full filtered view
        buffer_revision: Changes whenever the buffer contents change
        filter: Filter the view was computed with
        streaming: A logcat stream is running
        discovering: A device scan is in progress
        devices: Devices from the last completed scan
        selected_device: Device used by the next start, if any
        only_unity: Unity tag prefilter for the next start
        status_message: Last problem worth showing, or ""
    """
    rows: list[LogRecord]
    matching_count: int
    buffer_revision: int
    filter: FilterSpec
    streaming: bool
    discovering: bool
    devices: list[DeviceInfo]
    selected_device: DeviceInfo | None
    only_unity: bool
    status_message: str

    @property
    def can_start(self) -> bool:
        return not self.streaming and not self.discovering and bool(self.devices)

    @property
    def can_refresh_devices(self) -> bool:
        return not self.streaming and not self.discovering


class LogcatMonitor:
    """
    Session context owning all monitor state.

    Usage:
        monitor = LogcatMonitor(load_config())
        monitor.refresh_devices()
        while running:
            snapshot = monitor.tick()
            render(snapshot)
        monitor.shutdown()
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        adb_path: str | Path | None = None,
        runner_factory: Callable[[], ProcessRunner] = ProcessRunner,
    ):
        """
        Initialize the monitor.

        Args:
            config: Configuration (defaults if None)
            adb_path: adb executable (resolved from config if None)
            runner_factory: Creates ProcessRunner instances
        """
        self.config = config if config is not None else MonitorConfig()

        if adb_path is None:
            adb_path = resolve_adb_path(self.config)
        self.adb_path = adb_path

        self.buffer = LogBuffer(self.config.buffer.capacity)
        self.session = StreamingSession(
            adb_path or "",
            self.buffer,
            clear_timeout_seconds=self.config.adb.clear_timeout_seconds,
            runner_factory=runner_factory,
        )
        self.discovery = DeviceDiscovery(
            adb_path or "",
            max_attempts=self.config.adb.list_attempts,
            poll_timeout_ms=self.config.adb.poll_timeout_ms,
            runner_factory=runner_factory,
        )

        self.filter = FilterSpec.create(
            self.config.filters.text,
            self.config.filters.severities,
        )
        self.only_unity = self.config.filters.only_unity
        self.devices: list[DeviceInfo] = []
        self._selected_index = 0
        self.status_message = "" if adb_path else ADB_NOT_FOUND_MESSAGE

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self) -> MonitorSnapshot:
        """
        Advance discovery by one step and recompute the filtered view.

        Returns:
            Snapshot for rendering
        """
        if self.discovery.is_running:
            try:
                if self.discovery.step():
                    self._adopt_devices()
            except SpawnError as e:
                self._report_spawn_error(e)
                self._adopt_devices()

        if self.session.is_running and not self.session.process_alive:
            self.session.stop()
            self.status_message = "adb logcat exited; press Start to reconnect"

        records, revision = self.buffer.snapshot_with_revision()
        view = recompute(records, self.filter)

        return MonitorSnapshot(
            rows=display_window(view, self.config.buffer.display_limit),
            matching_count=len(view),
            buffer_revision=revision,
            filter=self.filter,
            streaming=self.session.is_running,
            discovering=self.discovery.is_running,
            devices=list(self.devices),
            selected_device=self.selected_device,
            only_unity=self.only_unity,
            status_message=self.status_message,
        )

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    def refresh_devices(self) -> bool:
        """
        Start a device scan.

        Returns:
            True if a scan started; False while streaming, while a scan is
            already running, or when adb cannot be launched
        """
        if self.session.is_running:
            return False

        try:
            return self.discovery.begin()
        except SpawnError as e:
            self._report_spawn_error(e)
            self._adopt_devices()
            return False

    def select_device(self, device: int | str) -> bool:
        """
        Choose the device for the next stream.

        Args:
            device: Index into the device list, or a device id

        Returns:
            True if the selection changed to a known device
        """
        if isinstance(device, int):
            index = device
        else:
            ids = [d.id for d in self.devices]
            if device not in ids:
                return False
            index = ids.index(device)

        if not 0 <= index < len(self.devices):
            return False
        self._selected_index = index
        return True

    @property
    def selected_device(self) -> DeviceInfo | None:
        if 0 <= self._selected_index < len(self.devices):
            return self.devices[self._selected_index]
        return None

    def _adopt_devices(self) -> None:
        """Replace the device list with the last scan's results"""
        previous = self.selected_device
        self.devices = self.discovery.results
        self._selected_index = 0
        if previous is not None:
            self.select_device(previous.id)

        if self.discovery.last_error is None:
            self.status_message = "" if self.devices else "No devices found"

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    def start_streaming(self) -> bool:
        """
        Start streaming from the selected device.

        Returns:
            True if a stream started
        """
        if self.session.is_running or self.discovery.is_running:
            return False

        device = self.selected_device
        if device is None:
            self.status_message = "No device selected"
            return False

        try:
            started = self.session.start(device.id, self.only_unity)
        except SpawnError as e:
            self._report_spawn_error(e)
            return False

        self.status_message = ""
        return started

    def stop_streaming(self) -> None:
        self.session.stop()

    def toggle_streaming(self) -> bool:
        """Start when stopped, stop when running; returns the new state"""
        if self.session.is_running:
            self.stop_streaming()
        else:
            self.start_streaming()
        return self.session.is_running

    def set_only_unity(self, only_unity: bool) -> bool:
        """Change the Unity prefilter; only allowed while stopped"""
        if self.session.is_running:
            return False
        self.only_unity = only_unity
        return True

    # -------------------------------------------------------------------------
    # Filtering
    # -------------------------------------------------------------------------

    def set_filter_text(self, text: str) -> None:
        self.filter = self.filter.with_substring(text)

    def set_severities(self, severities: Iterable[Severity | str]) -> None:
        """Replace the severity filter; duplicates collapse, empty means all"""
        self.filter = FilterSpec.create(self.filter.substring, severities)

    def toggle_severity(self, severity: Severity) -> bool:
        """Flip a severity filter; returns whether it is now active"""
        self.filter = self.filter.toggle(severity)
        return severity in self.filter.severities

    def clear(self) -> None:
        """Drop every buffered record"""
        self.buffer.clear()

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def shutdown(self) -> None:
        """Stop streaming and terminate any discovery process"""
        self.session.stop()
        self.discovery.teardown()

    def _report_spawn_error(self, error: SpawnError) -> None:
        logger.warning("%s", error)
        if not self.adb_path:
            self.status_message = ADB_NOT_FOUND_MESSAGE
        else:
            self.status_message = str(error)
