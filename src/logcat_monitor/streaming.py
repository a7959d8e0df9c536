"""
LOGCAT Monitor Streaming Session

Bridges a long-running `adb logcat` process into a LogBuffer: every line
delivered by the ProcessRunner reader threads is parsed and appended.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable

from logcat_monitor import adb_commands
from logcat_monitor.log_buffer import LogBuffer
from logcat_monitor.log_parser import LogLineParser
from logcat_monitor.process_runner import ProcessRunner


logger = logging.getLogger(__name__)


class StreamingSession:
    """
    Owns the log-streaming ProcessRunner.

    All log data lives in the buffer passed in; the session only tracks
    whether a stream is running.
    """

    DEFAULT_CLEAR_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        adb_path: str | Path,
        buffer: LogBuffer,
        parser: LogLineParser | None = None,
        clear_timeout_seconds: float = DEFAULT_CLEAR_TIMEOUT_SECONDS,
        runner_factory: Callable[[], ProcessRunner] = ProcessRunner,
    ):
        """
        Initialize the session.

        Args:
            adb_path: Path to the adb executable
            buffer: Destination for parsed records
            parser: Line parser (creates default if None)
            clear_timeout_seconds: Limit for the `logcat -c` step
            runner_factory: Creates ProcessRunner instances
        """
        self.adb_path = adb_path
        self.buffer = buffer
        self.parser = parser if parser is not None else LogLineParser()
        self.clear_timeout_seconds = clear_timeout_seconds
        self._runner_factory = runner_factory
        self._runner: ProcessRunner | None = None

    def start(self, device_id: str | None = None, only_unity: bool = True) -> bool:
        """
        Clear the device log, then start streaming it.

        Args:
            device_id: Device serial, or empty/None for adb's default device
            only_unity: Restrict the stream to the Unity tag

        Returns:
            True if a stream was started, False if one was already running

        Raises:
            SpawnError: If adb cannot be launched
        """
        if self._runner is not None:
            return False

        self._clear_device_log(device_id)

        runner = self._runner_factory()
        runner.spawn(
            self.adb_path,
            adb_commands.stream_log_args(device_id, only_unity),
            self._on_line,
        )
        self._runner = runner
        logger.info(
            "Streaming logcat from %s%s",
            device_id or "default device",
            " (Unity only)" if only_unity else "",
        )
        return True

    def stop(self) -> None:
        """Stop streaming; no-op when not running"""
        runner = self._runner
        if runner is None:
            return

        self._runner = None
        runner.terminate()
        logger.info("Streaming stopped")

    @property
    def is_running(self) -> bool:
        """True between start() and stop()"""
        return self._runner is not None

    @property
    def process_alive(self) -> bool:
        """True while the adb logcat process itself is still alive"""
        return self._runner is not None and self._runner.is_running

    def _clear_device_log(self, device_id: str | None) -> None:
        """Run `logcat -c` to completion before streaming"""
        clearer = self._runner_factory()
        clearer.spawn(self.adb_path, adb_commands.clear_log_args(device_id))
        try:
            code = clearer.wait(timeout=self.clear_timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(
                "logcat -c did not finish within %ss; continuing",
                self.clear_timeout_seconds,
            )
            clearer.terminate()
            return

        if code != 0:
            logger.warning("logcat -c exited with code %s", code)

    def _on_line(self, line: str) -> None:
        """Line sink, called on reader threads"""
        self.buffer.append(self.parser.parse_line(line))
