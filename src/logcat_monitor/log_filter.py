"""
LOGCAT Monitor Filter Engine

Pure filtering of a buffer snapshot by message substring and severity.
The view is recomputed wholesale on every call; windowing to the most
recent rows happens at render time via display_window().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from logcat_monitor.log_parser import LogRecord, Severity


# Substrings shorter than this are ignored (everything matches)
MIN_SUBSTRING_LENGTH = 3

# Rows shown by a display
DEFAULT_DISPLAY_LIMIT = 200


@dataclass(frozen=True)
class FilterSpec:
    """
    Filter applied to the buffered records.

    Attributes:
        substring: Case-insensitive message filter, ignored below 3 characters
        severities: Severities to keep; empty means all
    """
    substring: str = ""
    severities: frozenset[Severity] = field(default_factory=frozenset)

    @classmethod
    def create(
        cls,
        substring: str = "",
        severities: Iterable[Severity | str] = (),
    ) -> FilterSpec:
        """
        Build a FilterSpec from loose input.

        Args:
            substring: Message filter text
            severities: Severity members or their letters (e.g. "E")

        Returns:
            Normalized FilterSpec
        """
        normalized = frozenset(
            s if isinstance(s, Severity) else Severity.from_letter(s)
            for s in severities
        )
        return cls(substring=substring or "", severities=normalized)

    @property
    def is_substring_active(self) -> bool:
        return len(self.substring) >= MIN_SUBSTRING_LENGTH

    def with_substring(self, substring: str) -> FilterSpec:
        return FilterSpec(substring=substring, severities=self.severities)

    def toggle(self, severity: Severity) -> FilterSpec:
        """Return a copy with `severity` added or removed"""
        return FilterSpec(
            substring=self.substring,
            severities=self.severities ^ {severity},
        )

    def matches(self, record: LogRecord) -> bool:
        """Check a single record against this filter"""
        if self.is_substring_active:
            if self.substring.casefold() not in record.message.casefold():
                return False

        if self.severities and record.severity not in self.severities:
            return False

        return True


def recompute(snapshot: Sequence[LogRecord], spec: FilterSpec) -> list[LogRecord]:
    """
    Filter a buffer snapshot.

    Args:
        snapshot: Records oldest to newest (not modified)
        spec: Filter to apply

    Returns:
        Matching records in snapshot order
    """
    if not spec.is_substring_active and not spec.severities:
        return list(snapshot)

    return [record for record in snapshot if spec.matches(record)]


def display_window(
    view: Sequence[LogRecord],
    limit: int = DEFAULT_DISPLAY_LIMIT,
) -> list[LogRecord]:
    """
    Most recent `limit` records of a filtered view, oldest first.

    Args:
        view: Filtered records
        limit: Maximum rows to show

    Returns:
        Tail of the view
    """
    if limit <= 0:
        return []
    return list(view[-limit:])
