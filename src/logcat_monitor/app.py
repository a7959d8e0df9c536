"""
LOGCAT Monitor Textual Application

Terminal dashboard over LogcatMonitor:
- Toolbar: Unity prefilter, Start/Stop/Clear, match count, filter text,
  severity toggles
- Device row: device picker and "Devices Update"
- Log view: the most recent matching rows, coloured by severity

A timer calls LogcatMonitor.tick() at the configured refresh interval;
that is the only place device discovery advances.
"""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    RichLog,
    Select,
)

from logcat_monitor.log_parser import Severity
from logcat_monitor.monitor import LogcatMonitor, MonitorSnapshot


# Toolbar order of the severity toggles
SEVERITY_BUTTONS = (
    Severity.ERROR,
    Severity.WARNING,
    Severity.DEBUG,
    Severity.INFO,
    Severity.VERBOSE,
)


class LogcatApp(App):
    """Logcat dashboard"""

    TITLE = "Logcat Monitor"
    SUB_TITLE = "Android device log viewer"

    CSS = """
    #toolbar, #device_row {
        height: 3;
    }

    #toolbar Button, #device_row Button {
        min-width: 8;
        margin: 0 1 0 0;
    }

    #match_count, #status {
        padding: 1 1;
        width: auto;
    }

    #filter_text {
        width: 1fr;
        min-width: 20;
    }

    #device_select {
        width: 60;
    }

    #status {
        color: $warning;
    }

    #log_view {
        height: 1fr;
        border: round $accent;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("s", "toggle_stream", "Start/Stop", show=True),
        Binding("c", "clear", "Clear", show=True),
        Binding("u", "update_devices", "Devices Update", show=True),
    ]

    def __init__(self, monitor: LogcatMonitor, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.monitor = monitor
        self._rendered_key: tuple[Any, ...] | None = None
        self._device_options: tuple[tuple[str, str], ...] = ()

    def compose(self) -> ComposeResult:
        """Compose the UI"""
        yield Header()

        with Horizontal(id="toolbar"):
            yield Button("Only Unity", id="only_unity")
            yield Button("Start", id="start", variant="success")
            yield Button("Stop", id="stop", variant="error")
            yield Button("Clear", id="clear")
            yield Label("0 matching logs", id="match_count")
            yield Input(
                value=self.monitor.filter.substring,
                placeholder="Filter messages (3+ characters)",
                id="filter_text",
            )
            for severity in SEVERITY_BUTTONS:
                yield Button(severity.label, id=f"severity_{severity.letter}")

        with Horizontal(id="device_row"):
            yield Select([], prompt="No devices", id="device_select")
            yield Button("Devices Update", id="devices_update")
            yield Label("", id="status")

        yield RichLog(id="log_view", highlight=False, markup=False, wrap=False)
        yield Footer()

    def on_mount(self) -> None:
        """Start the first device scan and the refresh timer"""
        self.monitor.refresh_devices()
        interval = self.monitor.config.dashboard.refresh_interval_ms / 1000
        self.set_interval(interval, self._refresh)
        self._refresh()

    def on_unmount(self) -> None:
        """Never leave adb processes behind"""
        self.monitor.shutdown()

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _refresh(self) -> None:
        self._render_snapshot(self.monitor.tick())

    def _render_snapshot(self, snapshot: MonitorSnapshot) -> None:
        self.query_one("#match_count", Label).update(
            f"{snapshot.matching_count} matching logs"
        )
        self.query_one("#status", Label).update(snapshot.status_message)

        only_unity = self.query_one("#only_unity", Button)
        only_unity.variant = "primary" if snapshot.only_unity else "default"
        only_unity.disabled = snapshot.streaming

        self.query_one("#start", Button).disabled = not snapshot.can_start
        self.query_one("#stop", Button).disabled = not snapshot.streaming
        self.query_one("#devices_update", Button).disabled = not snapshot.can_refresh_devices

        for severity in SEVERITY_BUTTONS:
            button = self.query_one(f"#severity_{severity.letter}", Button)
            button.variant = "primary" if severity in snapshot.filter.severities else "default"

        self._render_devices(snapshot)
        self._render_rows(snapshot)

    def _render_devices(self, snapshot: MonitorSnapshot) -> None:
        select = self.query_one("#device_select", Select)
        options = tuple((device.detail, device.id) for device in snapshot.devices)
        if options != self._device_options:
            self._device_options = options
            select.set_options(options)
            if snapshot.selected_device is not None:
                select.value = snapshot.selected_device.id
        select.disabled = snapshot.streaming or snapshot.discovering or not options

    def _render_rows(self, snapshot: MonitorSnapshot) -> None:
        key = (snapshot.buffer_revision, snapshot.filter)
        if key == self._rendered_key:
            return
        self._rendered_key = key

        log_view = self.query_one("#log_view", RichLog)
        log_view.clear()
        for record in snapshot.rows:
            log_view.write(Text(record.format_row(), style=record.severity.color))

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Dispatch toolbar buttons"""
        button_id = event.button.id or ""

        if button_id == "start":
            self.monitor.start_streaming()
        elif button_id == "stop":
            self.monitor.stop_streaming()
        elif button_id == "clear":
            self.monitor.clear()
        elif button_id == "only_unity":
            self.monitor.set_only_unity(not self.monitor.only_unity)
        elif button_id == "devices_update":
            self.monitor.refresh_devices()
        elif button_id.startswith("severity_"):
            self.monitor.toggle_severity(Severity.from_letter(button_id[len("severity_"):]))

        self._refresh()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "filter_text":
            self.monitor.set_filter_text(event.value)
            self._refresh()

    def on_select_changed(self, event: Select.Changed) -> None:
        # Blank selection is a sentinel object, not a device id
        if isinstance(event.value, str):
            self.monitor.select_device(event.value)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def action_toggle_stream(self) -> None:
        self.monitor.toggle_streaming()
        self._refresh()

    def action_clear(self) -> None:
        self.monitor.clear()
        self._refresh()

    def action_update_devices(self) -> None:
        self.monitor.refresh_devices()
        self._refresh()


def run_dashboard(monitor: LogcatMonitor) -> None:
    """Run the dashboard until the user quits"""
    try:
        LogcatApp(monitor).run()
    finally:
        monitor.shutdown()
