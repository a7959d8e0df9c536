"""
LOGCAT Monitor Log Buffer

Bounded, thread-safe history of LogRecord values. Appends come from the
streaming reader threads; snapshots are taken by the host on every tick.
Both go through the same lock so a reader never observes a buffer that is
half-way through eviction.
"""

from __future__ import annotations

import threading
from collections import deque

from logcat_monitor.log_parser import LogRecord


DEFAULT_CAPACITY = 2000


class LogBuffer:
    """
    Ring buffer of the most recent log records.

    Once `capacity` records are stored, each append evicts the oldest record,
    so the size never exceeds `capacity` and survivors keep their order.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the buffer.

        Args:
            capacity: Maximum number of records kept in memory
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive (got {capacity})")

        self._capacity = capacity
        self._records: deque[LogRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._revision = 0

    def append(self, record: LogRecord) -> None:
        """
        Append a record, evicting the oldest one when full.

        Args:
            record: Parsed log record
        """
        with self._lock:
            self._records.append(record)
            self._revision += 1

    def clear(self) -> None:
        """Remove every record"""
        with self._lock:
            self._records.clear()
            self._revision += 1

    def snapshot(self) -> tuple[LogRecord, ...]:
        """
        Copy the buffer contents under the lock.

        Returns:
            Immutable tuple of records, oldest first
        """
        with self._lock:
            return tuple(self._records)

    def snapshot_with_revision(self) -> tuple[tuple[LogRecord, ...], int]:
        """Snapshot plus the revision it corresponds to, read atomically"""
        with self._lock:
            return tuple(self._records), self._revision

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def revision(self) -> int:
        """Counter bumped by every append and clear"""
        with self._lock:
            return self._revision

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0
