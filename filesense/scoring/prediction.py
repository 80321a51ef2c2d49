"""
Next-access prediction models.

Each model looks at the subject's own history from a different angle:
- frequency: what gets opened most
- pattern: what usually follows the files just opened
- temporal: what gets opened at this time of day
- context: what belongs to the current project or directory
- workflow: what followed the current file in earlier sessions
"""

from collections import Counter, defaultdict
from datetime import timedelta
from typing import Dict, List, Sequence

from ..core.models import Candidate, InteractionEvent, directory_of, file_type_of, utcnow
from ..patterns.learner import PatternLearner
from ..profiles.context import ContextFeatures
from .base import GrowingAccuracyModel

SESSION_GAP = timedelta(minutes=30)


def subject_events(history: Sequence[InteractionEvent], context: ContextFeatures) -> List[InteractionEvent]:
    now = context.now or utcnow()
    return [e for e in history if e.subject_id == context.subject_id and e.timestamp <= now]


def split_sessions(events: Sequence[InteractionEvent], gap: timedelta = SESSION_GAP) -> List[List[InteractionEvent]]:
    """Chronological events cut wherever the idle gap exceeds `gap`."""
    sessions: List[List[InteractionEvent]] = []
    for event in events:
        if sessions and event.timestamp - sessions[-1][-1].timestamp <= gap:
            sessions[-1].append(event)
        else:
            sessions.append([event])
    return sessions


class FrequencyModel(GrowingAccuracyModel):
    """Most frequently accessed files within a trailing window."""

    base_accuracy = 0.70
    accuracy_rate = 0.0005
    accuracy_cap = 0.90

    def __init__(self, window: timedelta = timedelta(days=7)):
        super().__init__()
        self.window = window

    @property
    def name(self) -> str:
        return "frequency"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        now = context.now or utcnow()
        cutoff = now - self.window
        counts = Counter(
            e.path for e in subject_events(history, context)
            if e.timestamp >= cutoff and e.kind.is_access
        )
        if not counts:
            return []
        top = max(counts.values())
        return [
            self._candidate(path, count / top, f"Accessed {count} times in the last {self.window.days} days")
            for path, count in counts.most_common(self.max_candidates)
        ]


class PatternModel(GrowingAccuracyModel):
    """Next file predicted from learned access sequences."""

    base_accuracy = 0.75
    accuracy_rate = 0.001
    accuracy_cap = 0.95

    def __init__(self, learner: PatternLearner, tail: int = 3):
        super().__init__()
        self.learner = learner
        self.tail = tail

    @property
    def name(self) -> str:
        return "pattern"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        events = [e for e in subject_events(history, context) if e.kind.is_access]
        if not events:
            return []
        recent_paths = [e.path for e in events[-self.tail:]]
        predictions = self.learner.predict_next(
            recent_paths, subject_id=context.subject_id, now=context.now, limit=self.max_candidates
        )
        return [
            self._candidate(
                path,
                confidence,
                f"Follows {' -> '.join(pattern.prefix)} (seen {pattern.frequency}x)",
            )
            for path, confidence, pattern in predictions
        ]


class TemporalModel(GrowingAccuracyModel):
    """Files this subject usually opens around the current hour."""

    base_accuracy = 0.80
    accuracy_rate = 0.0003
    accuracy_cap = 0.92

    def __init__(self, hour_spread: int = 1):
        super().__init__()
        self.hour_spread = hour_spread

    @property
    def name(self) -> str:
        return "temporal"

    def _near(self, hour: int, target: int) -> bool:
        diff = abs(hour - target) % 24
        return min(diff, 24 - diff) <= self.hour_spread

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        counts: Counter = Counter()
        days: Dict[str, set] = defaultdict(set)
        for event in subject_events(history, context):
            if event.kind.is_access and self._near(event.timestamp.hour, context.hour):
                counts[event.path] += 1
                days[event.path].add(event.timestamp.date())
        if not counts:
            return []
        top = max(counts.values())
        results = []
        for path, count in counts.most_common(self.max_candidates):
            n_days = len(days[path])
            results.append(self._candidate(
                path,
                count / top,
                f"Usually opened around {context.hour:02d}:00 (on {n_days} day{'s' if n_days != 1 else ''})",
            ))
        return results


class ContextModel(GrowingAccuracyModel):
    """Files that belong to the current project, directory or preferred types."""

    base_accuracy = 0.85
    accuracy_rate = 0.0006
    accuracy_cap = 0.95

    @property
    def name(self) -> str:
        return "context"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        type_weight = dict(context.preferred_types)
        scores: Dict[str, float] = {}
        reasons: Dict[str, str] = {}
        for event in reversed(subject_events(history, context)):
            path = event.path
            if path in scores or path == context.current_file:
                continue
            score = 0.0
            reason = []
            if context.project and event.context.get("project") == context.project:
                score += 0.6
                reason.append(f"project {context.project}")
            elif context.working_directory and directory_of(path) == context.working_directory.rstrip("/"):
                score += 0.6
                reason.append(f"directory {context.working_directory}")
            weight = type_weight.get(file_type_of(path), 0.0)
            if weight:
                score += 0.4 * weight
                reason.append(f"preferred type .{file_type_of(path)}")
            if score > 0:
                scores[path] = score
                reasons[path] = "Matches current " + " and ".join(reason)

        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:self.max_candidates]
        return [self._candidate(path, score, reasons[path]) for path, score in ranked]


class WorkflowModel(GrowingAccuracyModel):
    """What followed the current file in earlier work sessions."""

    base_accuracy = 0.90
    accuracy_rate = 0.0005
    accuracy_cap = 0.97
    max_candidates = 3

    def __init__(self, gap: timedelta = SESSION_GAP):
        super().__init__()
        self.gap = gap

    @property
    def name(self) -> str:
        return "workflow"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        current = context.current_file
        if current is None:
            return []
        sessions = split_sessions(
            [e for e in subject_events(history, context) if e.kind.is_access], self.gap
        )
        followers: Counter = Counter()
        for session in sessions[:-1] or sessions:
            paths = [e.path for e in session]
            for i, path in enumerate(paths[:-1]):
                if path == current and paths[i + 1] != current:
                    followers[paths[i + 1]] += 1
        total = sum(followers.values())
        if total == 0:
            return []
        return [
            self._candidate(path, count / total, f"Came after {current} in {count} earlier session step(s)")
            for path, count in followers.most_common(self.max_candidates)
        ]


def default_prediction_models(learner: PatternLearner) -> List[GrowingAccuracyModel]:
    """The built-in next-access models, in registry order."""
    return [
        FrequencyModel(),
        PatternModel(learner),
        TemporalModel(),
        ContextModel(),
        WorkflowModel(),
    ]
