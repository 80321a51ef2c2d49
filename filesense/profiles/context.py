"""
Context features - what the user is doing right now.

Recomputed per request from the clock and the trailing history. Computing
a context never mutates any store, so it is safe to call repeatedly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from ..core.history import HistoryStore
from ..core.models import EventKind, InteractionEvent, utcnow
from .profile import ProfileStore

FOCUSED = "focused"
EXPLORATORY = "exploratory"
COLLABORATIVE = "collaborative"

FOCUSED_BELOW = 0.3
EXPLORATORY_ABOVE = 0.7

RECENT_KINDS = (EventKind.OPEN, EventKind.EDIT, EventKind.SAVE)


def file_variety(events: Iterable[InteractionEvent]) -> Optional[float]:
    """Distinct files / total events, or None for an empty window."""
    total = 0
    distinct = set()
    for event in events:
        total += 1
        distinct.add(event.path)
    if total == 0:
        return None
    return len(distinct) / total


def classify_work_mode(events: Iterable[InteractionEvent]) -> str:
    """
    Classify activity breadth over a window of events.

    A few files touched over and over is focused work, many different
    files is exploration, anything between is collaborative. An empty
    window counts as exploratory.
    """
    variety = file_variety(events)
    if variety is None:
        return EXPLORATORY
    if variety < FOCUSED_BELOW:
        return FOCUSED
    if variety > EXPLORATORY_ABOVE:
        return EXPLORATORY
    return COLLABORATIVE


@dataclass(frozen=True)
class ContextFeatures:
    """Transient features describing a subject's current situation."""

    subject_id: str
    hour: int
    weekday: int  # Monday == 0
    recent_files: Tuple[str, ...] = ()
    project: Optional[str] = None
    working_directory: Optional[str] = None
    work_mode: str = EXPLORATORY
    preferred_types: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)
    now: Optional[datetime] = None

    @property
    def current_file(self) -> Optional[str]:
        return self.recent_files[0] if self.recent_files else None

    def to_dict(self):
        return {
            "subject_id": self.subject_id,
            "hour": self.hour,
            "weekday": self.weekday,
            "recent_files": list(self.recent_files),
            "project": self.project,
            "working_directory": self.working_directory,
            "work_mode": self.work_mode,
            "preferred_types": [list(p) for p in self.preferred_types],
        }


class ContextBuilder:
    """
    Derive ContextFeatures from history and profiles.

    Example:
        builder = ContextBuilder(history, profiles)
        context = builder.compute_context("u1")
        context.work_mode      # "focused", "exploratory" or "collaborative"
        context.recent_files   # newest first, at most 5
    """

    def __init__(
        self,
        history: HistoryStore,
        profiles: ProfileStore,
        recent_limit: int = 5,
        window: timedelta = timedelta(hours=1),
    ):
        self.history = history
        self.profiles = profiles
        self.recent_limit = recent_limit
        self.window = window

    def compute_context(self, subject_id: str, now: Optional[datetime] = None) -> ContextFeatures:
        now = now or utcnow()
        events = [e for e in self.history.for_subject(subject_id) if e.timestamp <= now]

        recent: List[str] = []
        project = None
        working_directory = None
        for event in reversed(events):
            if event.kind in RECENT_KINDS and event.path not in recent and len(recent) < self.recent_limit:
                recent.append(event.path)
            if project is None and isinstance(event.context.get("project"), str):
                project = event.context["project"]
            if working_directory is None and isinstance(event.context.get("working_directory"), str):
                working_directory = event.context["working_directory"]
            if len(recent) >= self.recent_limit and project is not None and working_directory is not None:
                break

        window_events = self.history.recent(self.window, now=now, subject_id=subject_id)
        profile = self.profiles.snapshot(subject_id)

        return ContextFeatures(
            subject_id=subject_id,
            hour=now.hour,
            weekday=now.weekday(),
            recent_files=tuple(recent),
            project=project,
            working_directory=working_directory,
            work_mode=classify_work_mode(window_events),
            preferred_types=profile.preferred_types() if profile else (),
            now=now,
        )
