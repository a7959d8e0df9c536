"""
LOGCAT Monitor Process Runner

Owns the lifecycle of one external adb subprocess:
- spawn with stdout/stderr redirected to pipes
- drain both pipes continuously on background threads, handing every
  non-trivial line to a sink (a full pipe would stall adb)
- poll for exit with a bounded timeout, for callers driven by a host tick
- terminate safely, including when the process already exited
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import IO, Callable, Sequence


logger = logging.getLogger(__name__)

LineSink = Callable[[str], None]


# =============================================================================
# Errors
# =============================================================================


class SpawnError(Exception):
    """
    The executable could not be launched.

    Attributes:
        executable: Path that was attempted
        reason: Short human-readable cause
    """

    def __init__(self, executable: str | Path, reason: str):
        self.executable = str(executable)
        self.reason = reason
        super().__init__(f"Cannot launch '{self.executable}': {reason}")


# =============================================================================
# Process Runner
# =============================================================================


class ProcessRunner:
    """
    Manages exactly one external subprocess.

    Lines arrive on one reader thread per redirected stream, so order is kept
    within a stream but stdout and stderr may interleave arbitrarily.

    Usage:
        runner = ProcessRunner()
        runner.spawn(adb_path, ["devices"], lines.append)
        while not runner.poll_exited(10):
            ...  # do other work
        code = runner.exit_code()
    """

    # Lines of this length or shorter carry nothing useful
    MIN_LINE_LENGTH = 3

    # Grace period after terminate() before escalating to kill()
    TERMINATE_TIMEOUT_SECONDS = 5.0

    # How long terminate() waits for reader threads to hit EOF
    READER_JOIN_SECONDS = 1.0

    def __init__(self) -> None:
        self._process: subprocess.Popen[str] | None = None
        self._readers: list[threading.Thread] = []
        self._command: list[str] = []
        self._exited = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def spawn(
        self,
        executable: str | Path,
        arguments: Sequence[str] | str = (),
        line_sink: LineSink | None = None,
        include_stderr: bool = True,
    ) -> None:
        """
        Launch the process.

        Args:
            executable: Path to the executable
            arguments: Argument list, or a string split with shlex
            line_sink: Receives each output line; None discards output
            include_stderr: Also deliver stderr lines to the sink

        Raises:
            SpawnError: If the executable cannot be launched
            RuntimeError: If this runner already owns a process
        """
        if self._process is not None:
            raise RuntimeError("ProcessRunner already owns a process")

        executable = str(executable) if executable else ""
        if not executable:
            raise SpawnError(executable, "no executable configured")

        if isinstance(arguments, str):
            args = shlex.split(arguments)
        else:
            args = [str(a) for a in arguments]

        command = [executable, *args]
        capture_stderr = line_sink is not None and include_stderr

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if line_sink is not None else subprocess.DEVNULL,
                stderr=subprocess.PIPE if capture_stderr else subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,  # Line buffered
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
            )
        except FileNotFoundError as e:
            raise SpawnError(executable, "executable not found") from e
        except PermissionError as e:
            raise SpawnError(executable, "permission denied") from e
        except OSError as e:
            raise SpawnError(executable, str(e)) from e

        self._process = process
        self._command = command
        self._exited = False
        logger.debug("Spawned pid %s: %s", process.pid, shlex.join(command))

        if line_sink is not None:
            self._start_reader(process.stdout, line_sink, "stdout")
            if capture_stderr:
                self._start_reader(process.stderr, line_sink, "stderr")

    def poll_exited(self, timeout_ms: int = 0) -> bool:
        """
        Check whether the process has exited, waiting at most `timeout_ms`.

        Exit is only reported once every buffered line has been delivered.

        Args:
            timeout_ms: Upper bound on blocking, in milliseconds

        Returns:
            True once the process has exited and its output is drained
        """
        process = self._require_process()
        if self._exited:
            return True

        timeout = max(timeout_ms, 0) / 1000
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return False

        if not self._join_readers(timeout):
            return False

        self._exited = True
        logger.debug("pid %s exited with code %s", process.pid, process.returncode)
        return True

    def wait(self, timeout: float | None = None) -> int:
        """
        Block until the process exits and its output is drained.

        Args:
            timeout: Seconds to wait (None waits forever)

        Returns:
            Process exit code

        Raises:
            subprocess.TimeoutExpired: If the process outlives `timeout`
        """
        process = self._require_process()
        process.wait(timeout=timeout)
        self._join_readers(None)
        self._exited = True
        return process.returncode

    def terminate(self) -> None:
        """
        Stop the process and release its pipes.

        Safe to call when nothing was spawned or the process already exited.
        Termination errors are logged, never raised.
        """
        process = self._process
        if process is None:
            return

        try:
            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=self.TERMINATE_TIMEOUT_SECONDS)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait()
                logger.debug("Terminated pid %s", process.pid)
        except OSError as e:
            # Raced with natural exit
            logger.warning("Error terminating pid %s: %s", process.pid, e)
        finally:
            if not self._join_readers(self.READER_JOIN_SECONDS):
                logger.warning(
                    "Output of pid %s still open after terminate; abandoning reader",
                    process.pid,
                )
            self._exited = True

    def exit_code(self) -> int:
        """
        Exit code of the process.

        Raises:
            RuntimeError: If poll_exited() has not reported True yet
        """
        process = self._require_process()
        if not self._exited or process.returncode is None:
            raise RuntimeError("Process has not exited yet")
        return process.returncode

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Check if the process is alive"""
        return self._process is not None and self._process.poll() is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def command(self) -> list[str]:
        """Command line of the spawned process (empty before spawn)"""
        return list(self._command)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_process(self) -> subprocess.Popen[str]:
        if self._process is None:
            raise RuntimeError("No process spawned")
        return self._process

    def _start_reader(self, stream: IO[str] | None, sink: LineSink, name: str) -> None:
        if stream is None:
            return
        thread = threading.Thread(
            target=self._drain,
            args=(stream, sink, name),
            name=f"adb-{name}-reader",
            daemon=True,
        )
        self._readers.append(thread)
        thread.start()

    def _drain(self, stream: IO[str], sink: LineSink, name: str) -> None:
        """Reader thread body: deliver lines until EOF"""
        try:
            for raw in stream:
                line = raw.rstrip("\r\n")
                if len(line) < self.MIN_LINE_LENGTH:
                    continue
                try:
                    sink(line)
                except Exception:
                    logger.exception("Line sink failed on %s line", name)
        except (OSError, ValueError) as e:
            # Stream closed underneath us
            logger.debug("%s reader stopped: %s", name, e)
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def _join_readers(self, timeout: float | None) -> bool:
        """Wait for reader threads; True when all have finished"""
        for thread in self._readers:
            thread.join(timeout)
        return not any(t.is_alive() for t in self._readers)
