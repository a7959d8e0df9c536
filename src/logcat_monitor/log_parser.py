"""
LOGCAT Monitor Log Line Parser

Turns raw `adb logcat -v time` output lines into immutable LogRecord values.

Line format:
    MM-DD HH:MM:SS.mmm <L>/<tag and message>

where <L> is one of W, I, E, D, V. Anything that does not match degrades to
a Verbose record carrying the raw line and the current wall-clock time, so
parsing never fails.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Severity
# =============================================================================


class Severity(Enum):
    """Logcat priority, keyed by its single-letter wire encoding"""
    VERBOSE = "V"
    DEBUG = "D"
    INFO = "I"
    WARNING = "W"
    ERROR = "E"

    @property
    def letter(self) -> str:
        """Single-letter wire encoding"""
        return self.value

    @property
    def label(self) -> str:
        """Human-readable name (e.g. "Warning")"""
        return self.name.capitalize()

    @property
    def color(self) -> str:
        """Rich colour name used when rendering rows of this severity"""
        return _SEVERITY_COLORS[self]

    @classmethod
    def from_letter(cls, letter: str) -> Severity:
        """
        Look up a severity by letter (case-insensitive).

        Raises:
            ValueError: If the letter is not one of W, I, E, D, V
        """
        try:
            return cls(letter.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown severity letter: {letter!r}") from None


_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.WARNING: "yellow",
    Severity.INFO: "green",
    Severity.ERROR: "red",
    Severity.DEBUG: "blue",
    Severity.VERBOSE: "grey50",
}


# =============================================================================
# Log Record
# =============================================================================


@dataclass(frozen=True)
class LogRecord:
    """
    One parsed logcat line.

    Attributes:
        timestamp: Device timestamp in "MM-DD HH:MM:SS.mmm" form
        severity: Logcat priority
        message: Everything after the "<L>/" prefix (tag included)
    """
    timestamp: str
    severity: Severity
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "timestamp": self.timestamp,
            "severity": self.severity.letter,
            "message": self.message,
        }

    def format_row(self) -> str:
        """Single display row: "<timestamp> | <message>" """
        return f"{self.timestamp} | {self.message}"


# =============================================================================
# Line Parser
# =============================================================================


def format_timestamp(moment: datetime | None = None) -> str:
    """
    Format a datetime the way `logcat -v time` prints it.

    Args:
        moment: Time to format (defaults to now)

    Returns:
        Timestamp string like "05-12 10:22:33.123"
    """
    if moment is None:
        moment = datetime.now()
    return moment.strftime("%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


class LogLineParser:
    """
    Parser for `logcat -v time` lines.

    The pattern is searched anywhere in the line so that stray prefixes
    (e.g. a BOM on the first line of a stream) do not defeat parsing.

    Usage:
        parser = LogLineParser()
        record = parser.parse_line("05-12 10:22:33.123 E/Boom")
    """

    LINE_PATTERN = re.compile(
        r"([0-1][0-9]-[0-3][0-9] [0-2][0-9]:[0-5][0-9]:[0-5][0-9]\.[0-9]{3}) "
        r"([WIEDV])/(.*)"
    )

    def parse_line(self, line: str | bytes) -> LogRecord:
        """
        Parse a single logcat line.

        Args:
            line: Raw line (bytes are decoded as UTF-8 with replacement)

        Returns:
            LogRecord with parsed fields, or a Verbose fallback record
        """
        if isinstance(line, (bytes, bytearray)):
            line = bytes(line).decode("utf-8", errors="replace")
        elif not isinstance(line, str):
            line = str(line)

        line = line.rstrip("\r\n")

        match = self.LINE_PATTERN.search(line)
        if match is None:
            return self._fallback(line)

        return LogRecord(
            timestamp=match.group(1),
            severity=Severity(match.group(2)),
            message=match.group(3),
        )

    def _fallback(self, line: str) -> LogRecord:
        """Record for a line that does not follow the logcat format"""
        return LogRecord(
            timestamp=format_timestamp(),
            severity=Severity.VERBOSE,
            message=line,
        )


# =============================================================================
# Convenience Functions
# =============================================================================


_default_parser = LogLineParser()


def parse_log_line(line: str | bytes) -> LogRecord:
    """
    Convenience function to parse a single logcat line.

    Args:
        line: Raw log line

    Returns:
        Parsed LogRecord (never raises)
    """
    return _default_parser.parse_line(line)
