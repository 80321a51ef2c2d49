"""
Tests for the bounded interaction history.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_event
from filesense.core.history import HistoryStore


class TestAppend:

    def test_append_keeps_arrival_order(self):
        """In-order events are stored in arrival order."""
        history = HistoryStore()
        for i in range(3):
            history.append(make_event(f"f{i}.txt", minutes_ago=10 - i))
        assert history.paths() == ["f0.txt", "f1.txt", "f2.txt"]
        assert len(history) == 3

    def test_backfilled_event_inserted_by_timestamp(self):
        """An event older than the newest one lands at its chronological place."""
        history = HistoryStore()
        history.append(make_event("first.txt", minutes_ago=30))
        history.append(make_event("third.txt", minutes_ago=5))
        history.append(make_event("second.txt", minutes_ago=10))
        assert history.paths() == ["first.txt", "second.txt", "third.txt"]

    def test_equal_timestamps_keep_arrival_order(self):
        history = HistoryStore()
        history.append(make_event("late.txt", minutes_ago=1))
        history.append(make_event("a.txt", minutes_ago=5))
        history.append(make_event("b.txt", minutes_ago=5))
        assert history.paths() == ["a.txt", "b.txt", "late.txt"]

    def test_eviction_drops_oldest_by_timestamp(self):
        """Backfilled old events are the first to be evicted."""
        history = HistoryStore(capacity=3, evict_fraction=0.34)
        for i in range(3):
            history.append(make_event(f"f{i}.txt", minutes_ago=10 - i))
        history.append(make_event("ancient.txt", minutes_ago=600))
        assert history.paths() == ["f0.txt", "f1.txt", "f2.txt"]

    def test_over_capacity_drops_oldest_batch(self):
        """Exceeding capacity drops the oldest tenth in one batch."""
        history = HistoryStore(capacity=100, evict_fraction=0.1)
        for i in range(101):
            history.append(make_event(f"f{i}.txt"))
        assert len(history) == 91
        assert history.paths()[0] == "f10.txt"
        assert history.evicted == 10

    def test_default_capacity_trims_thousand(self):
        """At the default capacity, one overflow evicts 1000 events."""
        history = HistoryStore()
        event = make_event("same.txt")
        for _ in range(10001):
            history.append(event)
        assert len(history) == 9001

    def test_never_exceeds_capacity(self):
        """Length stays at or below capacity after every append."""
        history = HistoryStore(capacity=5, evict_fraction=0.2)
        for i in range(40):
            history.append(make_event(f"f{i}.txt"))
            assert len(history) <= 5

    @pytest.mark.parametrize("capacity,fraction", [(0, 0.1), (10, 0.0), (10, 1.5)])
    def test_invalid_settings_rejected(self, capacity, fraction):
        """Capacity and eviction fraction are validated."""
        with pytest.raises(ValueError):
            HistoryStore(capacity=capacity, evict_fraction=fraction)


class TestRecent:

    def test_recent_newest_first_within_window(self):
        """Only events within the window, newest first."""
        history = HistoryStore()
        for minutes in (90, 30, 10):
            history.append(make_event(f"m{minutes}.txt", minutes_ago=minutes))
        recent = list(history.recent(timedelta(hours=1), now=NOW))
        assert [e.path for e in recent] == ["m10.txt", "m30.txt"]

    def test_out_of_order_append_stays_newest_first(self):
        history = HistoryStore()
        history.append(make_event("new.txt", minutes_ago=5))
        history.append(make_event("older.txt", minutes_ago=30))
        recent = list(history.recent(timedelta(hours=1), now=NOW))
        assert [e.path for e in recent] == ["new.txt", "older.txt"]

    def test_backfill_does_not_hide_window(self):
        """An old event appended last does not cut the window short."""
        history = HistoryStore()
        history.append(make_event("new.txt", minutes_ago=5))
        history.append(make_event("backfill.txt", minutes_ago=48 * 60))
        recent = list(history.recent(timedelta(hours=1), now=NOW))
        assert [e.path for e in recent] == ["new.txt"]

    def test_recent_accepts_seconds(self):
        """The window may be given in seconds."""
        history = HistoryStore()
        history.append(make_event("old.txt", minutes_ago=5))
        history.append(make_event("new.txt", minutes_ago=1))
        assert [e.path for e in history.recent(120, now=NOW)] == ["new.txt"]

    def test_recent_skips_future_events(self):
        """Events timestamped after `now` are not yielded."""
        history = HistoryStore()
        history.append(make_event("past.txt", minutes_ago=5))
        history.append(make_event("future.txt", minutes_ago=-5))
        assert [e.path for e in history.recent(timedelta(hours=1), now=NOW)] == ["past.txt"]

    def test_recent_filters_subject(self):
        """subject_id restricts the yielded events."""
        history = HistoryStore()
        history.append(make_event("a.txt", minutes_ago=2, subject_id="u1"))
        history.append(make_event("b.txt", minutes_ago=1, subject_id="u2"))
        assert [e.path for e in history.recent(3600, now=NOW, subject_id="u1")] == ["a.txt"]

    def test_recent_is_safe_with_concurrent_append(self):
        """Appending while iterating does not disturb the iteration."""
        history = HistoryStore()
        for i in range(5):
            history.append(make_event(f"f{i}.txt", minutes_ago=5 - i))
        seen = []
        for event in history.recent(3600, now=NOW):
            history.append(make_event("late.txt", minutes_ago=0))
            seen.append(event.path)
        assert seen == ["f4.txt", "f3.txt", "f2.txt", "f1.txt", "f0.txt"]


class TestViews:

    def test_snapshot_for_subject(self):
        """Per-subject views are filtered projections of the global log."""
        history = HistoryStore()
        history.append(make_event("a.txt", subject_id="u1"))
        history.append(make_event("b.txt", subject_id="u2"))
        history.append(make_event("c.txt", subject_id="u1"))
        assert [e.path for e in history.for_subject("u1")] == ["a.txt", "c.txt"]
        assert history.subjects() == ["u1", "u2"]

    def test_clear(self):
        """clear() empties the log."""
        history = HistoryStore()
        history.append(make_event("a.txt"))
        history.clear()
        assert len(history) == 0
