"""
Per-subject profiles.

A profile accumulates what a user works with: raw counters of file types,
categories and active hours, click-through weights learned from search
results, and a personal embedding vector. Profiles are created lazily and
live for the lifetime of the process.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..core.locks import ReadWriteLock
from ..core.models import InteractionEvent, utcnow
from ..errors import NotFoundError

logger = logging.getLogger(__name__)

CLICK_LEARNING_RATE = 0.2
VECTOR_LEARNING_RATE = 0.1


def running_update(old: float, observed: float, rate: float) -> float:
    """Exponential running update toward an observation."""
    return old + rate * (observed - old)


def normalize_counts(counts: Dict[str, float]) -> Dict[str, float]:
    total = sum(counts.values())
    if total <= 0:
        return {}
    return {key: value / total for key, value in counts.items()}


@dataclass(eq=False)
class Profile:
    """What one subject tends to work with."""

    subject_id: str
    type_counts: Dict[str, float] = field(default_factory=dict)
    category_counts: Dict[str, float] = field(default_factory=dict)
    hour_counts: Dict[str, float] = field(default_factory=dict)
    click_weights: Dict[str, float] = field(default_factory=dict)
    personal_vector: Optional[np.ndarray] = None
    total_events: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def type_weights(self) -> Dict[str, float]:
        """Type counters normalized to a distribution."""
        return normalize_counts(self.type_counts)

    def hour_histogram(self) -> Dict[str, float]:
        return normalize_counts(self.hour_counts)

    def preferred_types(self, limit: int = 3) -> Tuple[Tuple[str, float], ...]:
        ranked = sorted(self.type_weights().items(), key=lambda kv: (-kv[1], kv[0]))
        return tuple((t, round(w, 6)) for t, w in ranked[:limit])

    def to_dict(self) -> Dict:
        return {
            "subject_id": self.subject_id,
            "type_counts": dict(self.type_counts),
            "category_counts": dict(self.category_counts),
            "hour_counts": dict(self.hour_counts),
            "click_weights": dict(self.click_weights),
            "has_personal_vector": self.personal_vector is not None,
            "total_events": self.total_events,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ProfileStore:
    """
    Lazily-created profiles keyed by subject.

    Writers (event ingestion, clicks) take the write lock; readers get
    a copy via snapshot() so ranking never races with ingestion.
    """

    def __init__(self, vector_dimensions: int = 384):
        self.vector_dimensions = vector_dimensions
        self._profiles: Dict[str, Profile] = {}
        self._lock = ReadWriteLock()

    def get(self, subject_id: str, create: bool = True) -> Profile:
        """
        The live profile for a subject.

        Raises:
            NotFoundError: subject unknown and create is False
        """
        with self._lock.write():
            return self._get_locked(subject_id, create)

    def _get_locked(self, subject_id: str, create: bool = True) -> Profile:
        profile = self._profiles.get(subject_id)
        if profile is None:
            if not create:
                raise NotFoundError(f"No profile for subject {subject_id!r}")
            profile = Profile(subject_id=subject_id)
            self._profiles[subject_id] = profile
            logger.debug(f"Created profile for {subject_id}")
        return profile

    def snapshot(self, subject_id: str) -> Optional[Profile]:
        """Independent copy of a profile, or None. Never creates one."""
        with self._lock.read():
            profile = self._profiles.get(subject_id)
            return copy.deepcopy(profile) if profile is not None else None

    def update_on_event(self, event: InteractionEvent) -> Profile:
        """Bump raw type, category and hour counters. No normalization."""
        with self._lock.write():
            profile = self._get_locked(event.subject_id)
            file_type = event.file_type
            profile.type_counts[file_type] = profile.type_counts.get(file_type, 0) + 1

            category = event.context.get("category")
            if isinstance(category, str) and category:
                profile.category_counts[category] = profile.category_counts.get(category, 0) + 1

            hour_key = f"hour_{event.timestamp.hour}"
            profile.hour_counts[hour_key] = profile.hour_counts.get(hour_key, 0) + 1

            profile.total_events += 1
            profile.updated_at = utcnow()
            return profile

    def record_click(
        self,
        subject_id: str,
        file_type: Optional[str] = None,
        categories: Iterable[str] = (),
        rate: float = CLICK_LEARNING_RATE,
    ) -> Profile:
        """Move click weights for the clicked type and categories toward 1."""
        with self._lock.write():
            profile = self._get_locked(subject_id)
            keys: List[str] = [file_type] if file_type else []
            keys.extend(c for c in categories if c)
            for key in keys:
                old = profile.click_weights.get(key, 0.0)
                profile.click_weights[key] = running_update(old, 1.0, rate)
            profile.updated_at = utcnow()
            return profile

    def update_personal_vector(
        self,
        subject_id: str,
        vector: Sequence[float],
        rate: float = VECTOR_LEARNING_RATE,
    ) -> Optional[Profile]:
        """Blend a vector into the subject's personal embedding."""
        vec = np.asarray(vector, dtype=np.float32)
        if vec.shape != (self.vector_dimensions,):
            logger.debug(
                f"Skipping personal vector update for {subject_id}: "
                f"dimension {vec.shape} != {self.vector_dimensions}"
            )
            return None
        with self._lock.write():
            profile = self._get_locked(subject_id)
            if profile.personal_vector is None:
                profile.personal_vector = vec.copy()
            else:
                profile.personal_vector = (1 - rate) * profile.personal_vector + rate * vec
            profile.updated_at = utcnow()
            return profile

    def type_weights(self, subject_id: str) -> Dict[str, float]:
        with self._lock.read():
            profile = self._profiles.get(subject_id)
            return profile.type_weights() if profile else {}

    def subjects(self) -> List[str]:
        with self._lock.read():
            return list(self._profiles)

    def __contains__(self, subject_id: str) -> bool:
        with self._lock.read():
            return subject_id in self._profiles

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._profiles)
