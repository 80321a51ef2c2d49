"""
Pattern Learner - mine access sequences from history.

Tracks which files are touched back to back:
- Pairs, triples and quads of consecutive accesses
- How often each run recurred and when it was last seen
- Which file tends to come next after the current tail

Patterns are kept per subject so one user's habits never leak into
another's predictions.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.locks import ReadWriteLock
from ..core.models import InteractionEvent, utcnow
from .types import AccessPattern

logger = logging.getLogger(__name__)

SequenceKey = Tuple[str, ...]


class PatternLearner:
    """
    Learn contiguous access patterns from interaction history.

    Example:
        learner = PatternLearner()

        # Inline, after each append (the subject's full access list)
        learner.observe(history.for_subject("u1"), subject_id="u1")

        # Full re-mine, e.g. during retraining
        learner.learn(history.for_subject("u1"), subject_id="u1")

        # What comes after the files just opened?
        learner.predict_next(["a.py", "b.py"], subject_id="u1")
    """

    def __init__(self, lengths: Sequence[int] = (2, 3, 4), min_history: int = 3):
        """
        Initialize pattern learner.

        Args:
            lengths: Sequence lengths to mine
            min_history: Minimum events before any mining happens
        """
        if not lengths or min(lengths) < 2:
            raise ValueError("pattern lengths must be >= 2")
        self.lengths = tuple(sorted(set(lengths)))
        self.min_history = min_history
        self._patterns: Dict[str, Dict[SequenceKey, AccessPattern]] = defaultdict(dict)
        self._lock = ReadWriteLock()

    def learn(
        self,
        events: Sequence[InteractionEvent],
        subject_id: str = "*",
        now: Optional[datetime] = None,
    ) -> int:
        """
        Rebuild a subject's pattern table by mining every window.

        For each length L and every contiguous window of L events, the
        window's paths form the pattern key.

        Returns:
            Number of distinct patterns learned
        """
        now = now or utcnow()
        table: Dict[SequenceKey, AccessPattern] = {}
        if len(events) >= self.min_history:
            for length in self.lengths:
                for start in range(0, len(events) - length + 1):
                    window = events[start:start + length]
                    self._count(table, window, now)

        with self._lock.write():
            self._patterns[subject_id] = table
        logger.debug(f"Mined {len(table)} patterns for {subject_id} from {len(events)} events")
        return len(table)

    def observe(
        self,
        events: Sequence[InteractionEvent],
        subject_id: str = "*",
        now: Optional[datetime] = None,
    ) -> int:
        """
        Count the windows that end at the newest event.

        `events` is the subject's full chronological access list, one
        append longer than on the previous call. When it first reaches
        min_history, the windows ending at earlier events are counted
        too, so a run of observe() calls builds the same table as one
        learn() over the same events.

        Returns:
            Number of windows counted
        """
        n = len(events)
        if n < self.min_history:
            return 0
        now = now or utcnow()
        counted = 0
        with self._lock.write():
            table = self._patterns[subject_id]
            first_end = min(self.lengths) if n == self.min_history and not table else n
            for end in range(first_end, n + 1):
                for length in self.lengths:
                    if length > end:
                        break
                    self._count(table, events[end - length:end], now)
                    counted += 1
        return counted

    @staticmethod
    def _count(table: Dict[SequenceKey, AccessPattern], window: Sequence[InteractionEvent], now: datetime) -> None:
        key = tuple(e.path for e in window)
        seen_at = window[-1].timestamp
        pattern = table.get(key)
        if pattern is None:
            pattern = AccessPattern(sequence=key, frequency=1, last_seen=seen_at, first_seen=window[0].timestamp)
            pattern.refresh(now)
            table[key] = pattern
        else:
            pattern.observe(seen_at, now)

    def get(self, sequence: Iterable[str], subject_id: str = "*") -> Optional[AccessPattern]:
        with self._lock.read():
            return self._patterns.get(subject_id, {}).get(tuple(sequence))

    def patterns(self, subject_id: str = "*", now: Optional[datetime] = None) -> List[AccessPattern]:
        """A subject's patterns, confidence refreshed, strongest first."""
        now = now or utcnow()
        with self._lock.write():
            table = list(self._patterns.get(subject_id, {}).values())
            for pattern in table:
                pattern.refresh(now)
        return sorted(table, key=lambda p: (p.confidence, p.frequency), reverse=True)

    def predict_next(
        self,
        recent_paths: Sequence[str],
        subject_id: str = "*",
        now: Optional[datetime] = None,
        limit: int = 5,
    ) -> List[Tuple[str, float, AccessPattern]]:
        """
        Predict the next file from the tail of recent accesses.

        A pattern matches when its prefix equals the last len(prefix)
        paths. Each predicted path keeps its best-scoring pattern.

        Args:
            recent_paths: Chronological paths, newest last
            subject_id: Whose patterns to use
            now: Reference time for decay
            limit: Maximum predictions

        Returns:
            List of (path, confidence, pattern), strongest first
        """
        if not recent_paths:
            return []
        tail = tuple(recent_paths)
        best: Dict[str, Tuple[float, AccessPattern]] = {}
        for pattern in self.patterns(subject_id, now):
            prefix = pattern.prefix
            if len(prefix) > len(tail) or tail[-len(prefix):] != prefix:
                continue
            score = pattern.confidence
            current = best.get(pattern.next_path)
            # Ties go to the longer, more specific prefix
            if current is None or score > current[0] or (
                score == current[0] and len(prefix) > len(current[1].prefix)
            ):
                best[pattern.next_path] = (score, pattern)

        ranked = sorted(best.items(), key=lambda item: item[1][0], reverse=True)
        return [(path, score, pattern) for path, (score, pattern) in ranked[:limit]]

    def stats(self) -> Dict[str, int]:
        with self._lock.read():
            return {
                "subjects": len(self._patterns),
                "patterns": sum(len(t) for t in self._patterns.values()),
            }

    def clear(self) -> None:
        with self._lock.write():
            self._patterns.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return sum(len(t) for t in self._patterns.values())
