"""
LOGCAT Monitor Device Discovery

Lists connected Android devices and reads their build properties without
ever blocking the caller for more than a short poll interval.

Discovery is a resumable state machine advanced by step() once per host tick:

    IDLE -> LISTING_DEVICES -> FETCHING_PROPERTIES (one device at a time) -> DONE
                 |      ^
                 v      |
            RETRYING_SERVER   (`adb kill-server` after a failed listing)

At most one adb process owned by discovery is in flight at any time.
"""

from __future__ import annotations

import functools
import logging
import re
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from logcat_monitor import adb_commands
from logcat_monitor.process_runner import ProcessRunner, SpawnError


logger = logging.getLogger(__name__)


# =============================================================================
# Property Lines
# =============================================================================


PROPERTY_PATTERN = re.compile(r"\[(.+?)\]:\s*?\[(.*?)\].*")


def parse_property_line(line: str) -> tuple[str, str] | None:
    """
    Parse one `getprop` output line.

    Args:
        line: Line like "[ro.product.model]: [Pixel 7]"

    Returns:
        (key, value) pair, or None when the line has another shape
    """
    match = PROPERTY_PATTERN.search(line)
    if match is None:
        return None
    return match.group(1), match.group(2)


def _collect_property(properties: dict[str, str], line: str) -> None:
    """Line sink for getprop output; later duplicates win"""
    pair = parse_property_line(line)
    if pair is not None:
        key, value = pair
        properties[key] = value


# =============================================================================
# Device Info
# =============================================================================


DETAIL_FORMAT = "{manufacturer} {model} (version: {release}, sdk: {sdk}, id: {id})"

DETAIL_PROPERTIES = {
    "manufacturer": "ro.product.manufacturer",
    "model": "ro.product.model",
    "release": "ro.build.version.release",
    "sdk": "ro.build.version.sdk",
}


@dataclass(frozen=True)
class DeviceInfo:
    """
    A connected device.

    Attributes:
        id: adb serial (usable with `adb -s`)
        detail: Human-readable summary for device pickers
    """
    id: str
    detail: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {"id": self.id, "detail": self.detail}


def build_device_info(device_id: str, properties: Mapping[str, str]) -> DeviceInfo:
    """
    Summarize a device from its properties.

    Missing properties render as empty strings.

    Args:
        device_id: adb serial
        properties: Parsed getprop output

    Returns:
        DeviceInfo with a formatted detail line
    """
    values = {
        name: properties.get(key, "")
        for name, key in DETAIL_PROPERTIES.items()
    }
    return DeviceInfo(id=device_id, detail=DETAIL_FORMAT.format(id=device_id, **values))


# =============================================================================
# Discovery State Machine
# =============================================================================


class DiscoveryPhase(Enum):
    """Discovery progress"""
    IDLE = "idle"
    LISTING_DEVICES = "listing_devices"
    RETRYING_SERVER = "retrying_server"
    FETCHING_PROPERTIES = "fetching_properties"
    DONE = "done"


_ACTIVE_PHASES = frozenset({
    DiscoveryPhase.LISTING_DEVICES,
    DiscoveryPhase.RETRYING_SERVER,
    DiscoveryPhase.FETCHING_PROPERTIES,
})


class DeviceDiscovery:
    """
    Step-driven device discovery with listing retry.

    A failed `adb devices` (non-zero exit) consumes one attempt; while
    attempts remain, `adb kill-server` runs before listing again. Once the
    attempts are spent discovery finishes with no devices, which is not an error.

    Usage:
        discovery = DeviceDiscovery(adb_path)
        discovery.begin()
        # once per host tick:
        if discovery.step():
            devices = discovery.results
    """

    DEFAULT_MAX_ATTEMPTS = 2
    DEFAULT_POLL_TIMEOUT_MS = 10

    def __init__(
        self,
        adb_path: str | Path,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS,
        runner_factory: Callable[[], ProcessRunner] = ProcessRunner,
    ):
        """
        Initialize discovery.

        Args:
            adb_path: Path to the adb executable
            max_attempts: Listing attempts per pass (>= 1)
            poll_timeout_ms: Longest a single step() may block
            runner_factory: Creates ProcessRunner instances
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1 (got {max_attempts})")

        self.adb_path = adb_path
        self.max_attempts = max_attempts
        self.poll_timeout_ms = poll_timeout_ms
        self._runner_factory = runner_factory

        self._phase = DiscoveryPhase.IDLE
        self._runner: ProcessRunner | None = None
        self._attempts_made = 0
        self._listing_lines: list[str] = []
        self._candidates: deque[str] = deque()
        self._current_device: str | None = None
        self._properties: dict[str, str] = {}
        self._results: list[DeviceInfo] = []
        self.last_error: SpawnError | None = None

    # -------------------------------------------------------------------------
    # Host API
    # -------------------------------------------------------------------------

    def begin(self) -> bool:
        """
        Start a discovery pass.

        Returns:
            True if a pass started, False if one is already in progress

        Raises:
            SpawnError: If adb cannot be launched (discovery ends as DONE)
        """
        if self.is_running:
            return False

        self._results = []
        self._candidates.clear()
        self._current_device = None
        self._properties = {}
        self._attempts_made = 0
        self.last_error = None

        try:
            self._spawn_listing()
        except SpawnError as e:
            self._fail(e)
            raise
        return True

    def step(self) -> bool:
        """
        Advance by at most one transition without blocking past the poll timeout.

        Returns:
            True if discovery completed during this call

        Raises:
            SpawnError: If a follow-up adb command cannot be launched
                (discovery ends as DONE with the devices found so far)
        """
        if not self.is_running or self._runner is None:
            return False

        runner = self._runner
        if not runner.poll_exited(self.poll_timeout_ms):
            return False

        self._runner = None
        try:
            if self._phase is DiscoveryPhase.LISTING_DEVICES:
                self._on_listing_exited(runner)
            elif self._phase is DiscoveryPhase.RETRYING_SERVER:
                self._on_recovery_exited(runner)
            else:
                self._on_properties_exited(runner)
        except SpawnError as e:
            self._fail(e)
            raise

        return self._phase is DiscoveryPhase.DONE

    def teardown(self) -> None:
        """Terminate any in-flight adb process and return to IDLE"""
        runner = self._runner
        self._runner = None
        if runner is not None:
            runner.terminate()

        if self.is_running:
            logger.debug("Discovery torn down during %s", self._phase.value)
            self._phase = DiscoveryPhase.IDLE
            self._candidates.clear()
            self._current_device = None

    @property
    def results(self) -> list[DeviceInfo]:
        """Devices found by the last completed pass (empty while running)"""
        if self._phase is not DiscoveryPhase.DONE:
            return []
        return list(self._results)

    @property
    def phase(self) -> DiscoveryPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase in _ACTIVE_PHASES

    @property
    def is_done(self) -> bool:
        return self._phase is DiscoveryPhase.DONE

    @property
    def attempts_remaining(self) -> int:
        """Listing attempts left in the current pass"""
        return self.max_attempts - self._attempts_made

    @property
    def pending_devices(self) -> list[str]:
        """Device ids still waiting for their properties"""
        return list(self._candidates)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _spawn(self, arguments: list[str], sink: Callable[[str], None] | None) -> None:
        runner = self._runner_factory()
        runner.spawn(self.adb_path, arguments, sink, include_stderr=False)
        self._runner = runner

    def _spawn_listing(self) -> None:
        self._listing_lines = []
        self._spawn(adb_commands.list_devices_args(), self._listing_lines.append)
        self._attempts_made += 1
        self._set_phase(DiscoveryPhase.LISTING_DEVICES)

    def _on_listing_exited(self, runner: ProcessRunner) -> None:
        code = runner.exit_code()
        if code != 0:
            if self._attempts_made < self.max_attempts:
                logger.warning(
                    "adb devices exited with code %s; restarting adb server", code
                )
                self._spawn(adb_commands.kill_server_args(), None)
                self._set_phase(DiscoveryPhase.RETRYING_SERVER)
            else:
                logger.warning(
                    "adb devices failed %d time(s); giving up", self._attempts_made
                )
                self._finish()
            return

        candidates = []
        for line in self._listing_lines:
            device_id = adb_commands.parse_device_line(line)
            if device_id is not None:
                candidates.append(device_id)

        logger.debug("adb devices listed %d device(s)", len(candidates))
        self._candidates = deque(candidates)
        self._fetch_next_device()

    def _on_recovery_exited(self, runner: ProcessRunner) -> None:
        logger.debug("adb kill-server exited with code %s", runner.exit_code())
        self._spawn_listing()

    def _fetch_next_device(self) -> None:
        if not self._candidates:
            self._finish()
            return

        device_id = self._candidates.popleft()
        self._current_device = device_id
        # Each getprop run fills its own dict
        self._properties = properties = {}
        self._spawn(
            adb_commands.getprop_args(device_id),
            functools.partial(_collect_property, properties),
        )
        self._set_phase(DiscoveryPhase.FETCHING_PROPERTIES)

    def _on_properties_exited(self, runner: ProcessRunner) -> None:
        device_id = self._current_device or ""
        logger.debug(
            "getprop for %s returned %d properties (exit code %s)",
            device_id,
            len(self._properties),
            runner.exit_code(),
        )
        self._results.append(build_device_info(device_id, self._properties))
        self._current_device = None
        self._properties = {}
        self._fetch_next_device()

    def _finish(self) -> None:
        self._set_phase(DiscoveryPhase.DONE)
        logger.info("Device discovery finished: %d device(s)", len(self._results))

    def _fail(self, error: SpawnError) -> None:
        logger.warning("Device discovery aborted: %s", error)
        self.last_error = error
        self._runner = None
        self._candidates.clear()
        self._current_device = None
        self._set_phase(DiscoveryPhase.DONE)

    def _set_phase(self, phase: DiscoveryPhase) -> None:
        if phase is not self._phase:
            logger.debug("Discovery phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase
