"""Unit tests for the bounded rental event log."""

from rentquad.domain.enums import LogSource
from rentquad.domain.event_log import DEFAULT_LOG_LIMIT, EventLog


class TestEventLog:
    def test_newest_first(self):
        log = EventLog()
        log.add(LogSource.CLIENT, "first")
        log.add(LogSource.SERVER, "second")

        entries = log.entries()
        assert [e.message for e in entries] == ["second", "first"]
        assert entries[0].source == LogSource.SERVER

    def test_drops_oldest_past_limit(self):
        log = EventLog(limit=3)
        for i in range(5):
            log.add(LogSource.VEHICLE, f"m{i}")

        assert len(log) == 3
        assert [e.message for e in log.entries()] == ["m4", "m3", "m2"]

    def test_default_limit(self):
        log = EventLog()
        for i in range(DEFAULT_LOG_LIMIT + 10):
            log.add(LogSource.VEHICLE, str(i))
        assert len(log) == DEFAULT_LOG_LIMIT == 40

    def test_ids_unique_for_rapid_appends(self):
        log = EventLog()
        for _ in range(30):
            log.add(LogSource.CLIENT, "same")
        assert len({e.id for e in log.entries()}) == 30

    def test_timestamps_are_timezone_aware(self):
        entry = EventLog().add(LogSource.CLIENT, "hi")
        assert entry.timestamp.tzinfo is not None

    def test_clear(self):
        log = EventLog()
        log.add(LogSource.CLIENT, "x")
        log.clear()
        assert log.entries() == ()
        assert len(log) == 0

    def test_entries_is_a_copy(self):
        log = EventLog()
        log.add(LogSource.CLIENT, "x")
        before = log.entries()
        log.add(LogSource.CLIENT, "y")
        assert len(before) == 1
