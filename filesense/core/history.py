"""
History Store - bounded, append-only interaction log.

The working-memory tier of filesense: every recorded event lands here
first, and every model reads from here.
"""

import bisect
import logging
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Union

from .locks import ReadWriteLock
from .models import InteractionEvent, utcnow

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Capacity-bounded chronological log of interaction events.

    Events are kept sorted by timestamp; a backfilled event is inserted
    at its place, ties keep arrival order. When the capacity is exceeded
    the oldest `evict_fraction` of the log is dropped in one batch, so an
    in-order append is O(1) amortized instead of shifting on every insert.

    Example:
        history = HistoryStore(capacity=10000)
        history.append(event)

        # Newest first, stops at the first event older than an hour
        for event in history.recent(timedelta(hours=1)):
            ...
    """

    def __init__(self, capacity: int = 10000, evict_fraction: float = 0.1):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if not 0 < evict_fraction <= 1:
            raise ValueError("evict_fraction must be in (0, 1]")
        self.capacity = capacity
        self.evict_fraction = evict_fraction
        self._events: List[InteractionEvent] = []
        self._times: List[datetime] = []
        self._lock = ReadWriteLock()
        self._evicted = 0

    def append(self, event: InteractionEvent) -> None:
        with self._lock.write():
            if not self._times or event.timestamp >= self._times[-1]:
                self._events.append(event)
                self._times.append(event.timestamp)
            else:
                index = bisect.bisect_right(self._times, event.timestamp)
                self._events.insert(index, event)
                self._times.insert(index, event.timestamp)
            if len(self._events) > self.capacity:
                self._truncate_locked()

    def truncate(self) -> int:
        """Drop the oldest batch if over capacity. Returns events dropped."""
        with self._lock.write():
            return self._truncate_locked()

    def _truncate_locked(self) -> int:
        if len(self._events) <= self.capacity:
            return 0
        batch = max(1, int(self.capacity * self.evict_fraction))
        overflow = len(self._events) - self.capacity
        drop = max(batch, overflow)
        del self._events[:drop]
        del self._times[:drop]
        self._evicted += drop
        logger.debug(f"History truncated: dropped {drop} oldest events, {len(self._events)} kept")
        return drop

    def recent(
        self,
        window: Union[timedelta, float],
        now: Optional[datetime] = None,
        subject_id: Optional[str] = None,
    ) -> Iterator[InteractionEvent]:
        """
        Events within `window` of `now`, newest first.

        Lazy: the scan stops at the first event older than the window.
        Works on a snapshot, so the lock is not held while iterating.

        Args:
            window: timedelta or seconds
            now: Reference time (defaults to current UTC time)
            subject_id: Only yield this subject's events
        """
        if not isinstance(window, timedelta):
            window = timedelta(seconds=window)
        now = now or utcnow()
        cutoff = now - window
        with self._lock.read():
            events = list(self._events)

        for event in reversed(events):
            if event.timestamp < cutoff:
                break
            if event.timestamp > now:
                continue
            if subject_id is not None and event.subject_id != subject_id:
                continue
            yield event

    def snapshot(self, subject_id: Optional[str] = None) -> List[InteractionEvent]:
        """Chronological copy of the log, optionally for one subject."""
        with self._lock.read():
            if subject_id is None:
                return list(self._events)
            return [e for e in self._events if e.subject_id == subject_id]

    def for_subject(self, subject_id: str) -> List[InteractionEvent]:
        return self.snapshot(subject_id)

    def paths(self, subject_id: Optional[str] = None) -> List[str]:
        """Chronological list of accessed paths."""
        return [e.path for e in self.snapshot(subject_id)]

    def subjects(self) -> List[str]:
        with self._lock.read():
            return sorted({e.subject_id for e in self._events})

    def clear(self) -> None:
        with self._lock.write():
            self._events.clear()
            self._times.clear()

    @property
    def evicted(self) -> int:
        """Total events dropped by truncation since creation."""
        return self._evicted

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._events)
