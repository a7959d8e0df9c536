"""
Tests for the bounded log buffer
"""

import threading

import pytest

from logcat_monitor.log_buffer import DEFAULT_CAPACITY, LogBuffer
from logcat_monitor.log_parser import LogRecord, Severity


def make_record(index: int, severity: Severity = Severity.INFO) -> LogRecord:
    return LogRecord("01-01 00:00:00.000", severity, f"Tag: message {index}")


class TestLogBuffer:
    """Tests for LogBuffer"""

    def test_defaults(self) -> None:
        buffer = LogBuffer()

        assert buffer.capacity == DEFAULT_CAPACITY == 2000
        assert buffer.is_empty
        assert buffer.snapshot() == ()

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            LogBuffer(0)

    def test_append_preserves_order(self) -> None:
        buffer = LogBuffer(10)
        for i in range(5):
            buffer.append(make_record(i))

        assert [r.message for r in buffer.snapshot()] == [
            f"Tag: message {i}" for i in range(5)
        ]

    def test_never_exceeds_capacity(self) -> None:
        buffer = LogBuffer(100)
        for i in range(2500):
            buffer.append(make_record(i))
            assert len(buffer) <= 100

        survivors = buffer.snapshot()
        assert len(survivors) == 100
        assert survivors[0].message == "Tag: message 2400"
        assert survivors[-1].message == "Tag: message 2499"

    def test_clear(self) -> None:
        buffer = LogBuffer(10)
        buffer.append(make_record(1))
        buffer.clear()

        assert buffer.is_empty
        buffer.append(make_record(2))
        assert [r.message for r in buffer.snapshot()] == ["Tag: message 2"]

    def test_snapshot_is_detached(self) -> None:
        buffer = LogBuffer(10)
        buffer.append(make_record(1))
        snapshot = buffer.snapshot()

        buffer.append(make_record(2))

        assert len(snapshot) == 1

    def test_revision_changes_on_append_and_clear(self) -> None:
        buffer = LogBuffer(2)
        start = buffer.revision

        buffer.append(make_record(1))
        buffer.append(make_record(2))
        buffer.append(make_record(3))
        assert buffer.revision == start + 3

        buffer.clear()
        assert buffer.revision == start + 4

    def test_snapshot_with_revision(self) -> None:
        buffer = LogBuffer(5)
        buffer.append(make_record(1))

        records, revision = buffer.snapshot_with_revision()

        assert len(records) == 1
        assert revision == buffer.revision

    def test_concurrent_appends(self) -> None:
        buffer = LogBuffer(500)
        per_thread = 1000

        def writer(offset: int) -> None:
            for i in range(per_thread):
                buffer.append(make_record(offset + i))

        threads = [threading.Thread(target=writer, args=(n * per_thread,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(200):
            assert len(buffer.snapshot()) <= 500
        for thread in threads:
            thread.join()

        assert len(buffer) == 500
        assert buffer.revision == 4 * per_thread
