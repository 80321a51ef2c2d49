"""
Recommendation models.

Where prediction answers "what will I open next", recommendation answers
"what else should I look at":
- collaborative: files that people with overlapping work touched
- content: indexed files similar to what the subject is editing
- temporal: files active in the last day
- graph: neighbors of the recent files in the file graph
- context: other files in the current project or directory
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Sequence, Set

from ..core.graph import FileGraph
from ..core.models import Candidate, EventKind, InteractionEvent, directory_of, utcnow
from ..core.vectors import VectorStore
from ..profiles.context import ContextFeatures
from .base import GrowingAccuracyModel


def touched_paths(history: Sequence[InteractionEvent], subject_id: str) -> Set[str]:
    return {e.path for e in history if e.subject_id == subject_id}


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class CollaborativeModel(GrowingAccuracyModel):
    """Files touched by subjects whose file sets overlap with this one's."""

    base_accuracy = 0.75
    accuracy_rate = 0.001
    accuracy_cap = 0.95

    def __init__(self, min_similarity: float = 0.05):
        super().__init__()
        self.min_similarity = min_similarity

    @property
    def name(self) -> str:
        return "collaborative"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        files_by_subject: Dict[str, Set[str]] = defaultdict(set)
        for event in history:
            files_by_subject[event.subject_id].add(event.path)

        mine = files_by_subject.get(context.subject_id, set())
        if not mine:
            return []

        votes: Dict[str, float] = defaultdict(float)
        voters: Dict[str, int] = defaultdict(int)
        total_similarity = 0.0
        for other, files in files_by_subject.items():
            if other == context.subject_id:
                continue
            similarity = jaccard(mine, files)
            if similarity < self.min_similarity:
                continue
            total_similarity += similarity
            for path in files - mine:
                votes[path] += similarity
                voters[path] += 1

        if total_similarity == 0:
            return []
        ranked = sorted(votes.items(), key=lambda kv: kv[1], reverse=True)[:self.max_candidates]
        return [
            self._candidate(
                path,
                vote / total_similarity,
                f"Used by {voters[path]} people with overlapping work",
                tags=["shared"],
            )
            for path, vote in ranked
        ]


class ContentModel(GrowingAccuracyModel):
    """Indexed files similar in content to the subject's recent files."""

    base_accuracy = 0.80
    accuracy_rate = 0.0005
    accuracy_cap = 0.92
    max_candidates = 3

    def __init__(self, vectors: VectorStore, min_similarity: float = 0.3):
        super().__init__()
        self.vectors = vectors
        self.min_similarity = min_similarity

    @property
    def name(self) -> str:
        return "content"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        if not context.recent_files:
            return []
        touched = touched_paths(history, context.subject_id)
        best: Dict[str, float] = {}
        source: Dict[str, str] = {}
        for recent in context.recent_files:
            stored = self.vectors.get(recent)
            if stored is None:
                continue
            vector, _ = stored
            for path, similarity, _meta in self.vectors.search(vector, self.min_similarity):
                if path in touched or path == recent:
                    continue
                if similarity > best.get(path, float("-inf")):
                    best[path] = similarity
                    source[path] = recent

        ranked = sorted(best.items(), key=lambda kv: kv[1], reverse=True)[:self.max_candidates]
        return [
            self._candidate(
                path,
                similarity,
                f"Similar content to {source[path]}",
                similarity=similarity,
                tags=["similar"],
            )
            for path, similarity in ranked
        ]


class RecentActivityModel(GrowingAccuracyModel):
    """Files the subject was active on during the last day."""

    base_accuracy = 0.70
    accuracy_rate = 0.0003
    accuracy_cap = 0.88
    max_candidates = 4

    def __init__(self, window: timedelta = timedelta(hours=24)):
        super().__init__()
        self.window = window

    @property
    def name(self) -> str:
        return "temporal"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        now = context.now or utcnow()
        window_hours = self.window.total_seconds() / 3600.0
        seen: Dict[str, float] = {}
        for event in reversed(history):
            if now - event.timestamp > self.window:
                break
            if event.subject_id != context.subject_id or event.timestamp > now:
                continue
            if event.path in seen:
                continue
            hours = (now - event.timestamp).total_seconds() / 3600.0
            seen[event.path] = 0.5 + 0.5 * max(0.0, 1.0 - hours / window_hours)
            if len(seen) >= self.max_candidates:
                break
        return [
            self._candidate(path, confidence, "Recently accessed file", tags=["recent"])
            for path, confidence in seen.items()
        ]


class GraphModel(GrowingAccuracyModel):
    """Graph neighbors of the recent files, weighted by edge and importance."""

    base_accuracy = 0.85
    accuracy_rate = 0.0008
    accuracy_cap = 0.95
    max_candidates = 3

    def __init__(self, graph: FileGraph):
        super().__init__()
        self.graph = graph

    @property
    def name(self) -> str:
        return "graph"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        recent = set(context.recent_files)
        best: Dict[str, float] = {}
        kinds: Dict[str, str] = {}
        for path in context.recent_files:
            for neighbor, edge in self.graph.get_related_nodes(path):
                if neighbor in recent:
                    continue
                node = self.graph.get_node(neighbor)
                importance = node.importance if node else 0.5
                score = (edge.weight + importance) / 2.0
                if score > best.get(neighbor, 0.0):
                    best[neighbor] = score
                    kinds[neighbor] = edge.kind

        ranked = sorted(best.items(), key=lambda kv: kv[1], reverse=True)[:self.max_candidates]
        return [
            self._candidate(
                path,
                score,
                f"Related to files in your project graph ({kinds[path]})",
                tags=[kinds[path]],
            )
            for path, score in ranked
        ]


class ContextAwareModel(GrowingAccuracyModel):
    """Files other people use in the current project or directory."""

    base_accuracy = 0.78
    accuracy_rate = 0.0006
    accuracy_cap = 0.90

    @property
    def name(self) -> str:
        return "context"

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        if not context.project and not context.working_directory:
            return []
        touched = touched_paths(history, context.subject_id)
        workdir = context.working_directory.rstrip("/") if context.working_directory else None
        counts: Dict[str, int] = defaultdict(int)
        for event in history:
            if event.path in touched or event.kind in (EventKind.SEARCH, EventKind.RECOMMEND_REJECT):
                continue
            in_project = context.project and event.context.get("project") == context.project
            in_dir = workdir and directory_of(event.path) == workdir
            if in_project or in_dir:
                counts[event.path] += 1
        if not counts:
            return []
        top = max(counts.values())
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:self.max_candidates]
        where = context.project or context.working_directory
        return [
            self._candidate(
                path,
                0.5 + 0.5 * count / top,
                f"Matches your current workspace context ({where})",
                tags=["workspace"],
            )
            for path, count in ranked
        ]


def default_recommendation_models(vectors: VectorStore, graph: FileGraph) -> List[GrowingAccuracyModel]:
    """The built-in recommendation models, in registry order."""
    return [
        CollaborativeModel(),
        ContentModel(vectors),
        RecentActivityModel(),
        GraphModel(graph),
        ContextAwareModel(),
    ]
