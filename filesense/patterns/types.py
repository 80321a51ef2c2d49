"""
Access pattern types.

An access pattern is an ordered run of 2-4 file paths that the user
touched back to back. Its confidence blends how often the run recurred
with how recently it was last seen.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple

from ..core.models import utcnow

FREQUENCY_SATURATION = 10.0  # occurrences at which frequency stops adding confidence
RECENCY_WINDOW_HOURS = 168.0  # one week


def frequency_factor(frequency: int) -> float:
    return min(frequency / FREQUENCY_SATURATION, 1.0)


def recency_factor(last_seen: datetime, now: datetime) -> float:
    hours = (now - last_seen).total_seconds() / 3600.0
    return min(1.0, max(0.0, 1.0 - hours / RECENCY_WINDOW_HOURS))


def pattern_confidence(frequency: int, last_seen: datetime, now: datetime) -> float:
    """(frequency factor + recency factor) / 2, always in [0, 1]."""
    return (frequency_factor(frequency) + recency_factor(last_seen, now)) / 2.0


@dataclass
class AccessPattern:
    """A learned contiguous sequence of file accesses."""

    sequence: Tuple[str, ...]
    frequency: int = 1
    last_seen: datetime = field(default_factory=utcnow)
    confidence: float = 0.0
    first_seen: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.sequence = tuple(self.sequence)
        if not self.confidence:
            self.confidence = pattern_confidence(self.frequency, self.last_seen, self.last_seen)

    @property
    def prefix(self) -> Tuple[str, ...]:
        return self.sequence[:-1]

    @property
    def next_path(self) -> str:
        return self.sequence[-1]

    def observe(self, seen_at: datetime, now: datetime) -> None:
        """Another occurrence: bump frequency and recompute confidence."""
        self.frequency += 1
        if seen_at > self.last_seen:
            self.last_seen = seen_at
        self.confidence = pattern_confidence(self.frequency, self.last_seen, now)

    def refresh(self, now: datetime) -> float:
        """Recompute confidence for the passage of time."""
        self.confidence = pattern_confidence(self.frequency, self.last_seen, now)
        return self.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": list(self.sequence),
            "frequency": self.frequency,
            "last_seen": self.last_seen.isoformat(),
            "first_seen": self.first_seen.isoformat(),
            "confidence": self.confidence,
        }
