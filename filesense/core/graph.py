"""
File Graph - relationship memory between files.

Nodes are files keyed by path, with an importance score that decays over
a one-week window. Edges are typed (sequence, similar, dependency,
project) and re-asserting an edge averages its weight.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import ValidationError
from .locks import ReadWriteLock
from .models import file_type_of, utcnow

logger = logging.getLogger(__name__)

RELATIONSHIP_KINDS = ("sequence", "similar", "dependency", "project")

WEEK_HOURS = 168.0


def decayed_importance(old: float, observed_at: datetime, now: datetime) -> float:
    """Blend an importance score with a week-decayed recency factor."""
    hours = (now - observed_at).total_seconds() / 3600.0
    time_factor = max(0.0, 1.0 - hours / WEEK_HOURS)
    return (old + min(1.0, time_factor)) / 2.0


def averaged_weight(old: float, new: float) -> float:
    """Re-asserted edges average rather than accumulate."""
    return (old + new) / 2.0


@dataclass
class FileNode:
    """A file in the graph."""
    path: str
    file_type: str
    access_count: int = 0
    importance: float = 0.5
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    last_access: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "file_type": self.file_type,
            "access_count": self.access_count,
            "importance": self.importance,
            "tags": list(self.tags),
            "categories": list(self.categories),
            "last_access": self.last_access.isoformat() if self.last_access else None,
        }


@dataclass
class Edge:
    """A directed, typed relationship from one file to another."""
    target: str
    kind: str
    weight: float
    created_at: datetime = field(default_factory=utcnow)


class FileGraph:
    """
    In-process file relationship graph.

    Example:
        graph = FileGraph()
        graph.touch("src/app.py", event.timestamp)
        graph.add_relationship("src/app.py", "src/util.py", "sequence", 0.5)

        for path, edge in graph.get_related_nodes("src/app.py"):
            ...
    """

    def __init__(self):
        self._nodes: Dict[str, FileNode] = {}
        self._edges: Dict[str, List[Edge]] = {}
        self._lock = ReadWriteLock()

    def add_node(self, path: str, tags: Iterable[str] = (), categories: Iterable[str] = ()) -> FileNode:
        """Create a node if missing; merge tags and categories."""
        with self._lock.write():
            node = self._nodes.get(path)
            if node is None:
                node = FileNode(path=path, file_type=file_type_of(path))
                self._nodes[path] = node
            for tag in tags:
                if tag not in node.tags:
                    node.tags.append(tag)
            for category in categories:
                if category not in node.categories:
                    node.categories.append(category)
            return node

    def touch(self, path: str, observed_at: datetime, now: Optional[datetime] = None) -> FileNode:
        """Record an access: bump the count and re-blend importance."""
        now = now or utcnow()
        with self._lock.write():
            node = self._nodes.get(path)
            if node is None:
                node = FileNode(path=path, file_type=file_type_of(path))
                self._nodes[path] = node
            node.access_count += 1
            node.importance = decayed_importance(node.importance, observed_at, now)
            if node.last_access is None or observed_at > node.last_access:
                node.last_access = observed_at
            return node

    def add_relationship(self, source: str, target: str, kind: str, weight: float = 0.5) -> Edge:
        """Add or re-assert an edge. Re-asserted weights are averaged."""
        if kind not in RELATIONSHIP_KINDS:
            raise ValidationError(
                f"Unknown relationship kind {kind!r} (expected one of: {', '.join(RELATIONSHIP_KINDS)})"
            )
        if source == target:
            raise ValidationError("A file cannot be related to itself")
        with self._lock.write():
            edges = self._edges.setdefault(source, [])
            for edge in edges:
                if edge.target == target and edge.kind == kind:
                    edge.weight = averaged_weight(edge.weight, weight)
                    return edge
            edge = Edge(target=target, kind=kind, weight=weight)
            edges.append(edge)
            return edge

    def get_node(self, path: str) -> Optional[FileNode]:
        with self._lock.read():
            return self._nodes.get(path)

    def get_relationships(self, path: str, kind: Optional[str] = None) -> List[Edge]:
        with self._lock.read():
            return [
                e for e in self._edges.get(path, [])
                if kind is None or e.kind == kind
            ]

    def get_related_nodes(
        self,
        path: str,
        kinds: Optional[Iterable[str]] = None,
        direction: str = "both",
    ) -> List[Tuple[str, Edge]]:
        """
        Neighbors of a file, strongest edge first.

        Args:
            path: File to start from
            kinds: Restrict to these relationship kinds
            direction: "out", "in" or "both"
        """
        kinds = set(kinds) if kinds else None
        best: Dict[str, Edge] = {}
        with self._lock.read():
            if direction in ("out", "both"):
                for edge in self._edges.get(path, []):
                    if kinds is None or edge.kind in kinds:
                        if edge.target not in best or edge.weight > best[edge.target].weight:
                            best[edge.target] = edge
            if direction in ("in", "both"):
                for source, edges in self._edges.items():
                    if source == path:
                        continue
                    for edge in edges:
                        if edge.target != path or (kinds is not None and edge.kind not in kinds):
                            continue
                        if source not in best or edge.weight > best[source].weight:
                            best[source] = edge
        return sorted(best.items(), key=lambda item: item[1].weight, reverse=True)

    @property
    def node_count(self) -> int:
        with self._lock.read():
            return len(self._nodes)

    @property
    def edge_count(self) -> int:
        with self._lock.read():
            return sum(len(edges) for edges in self._edges.values())

    def get_stats(self) -> Dict[str, int]:
        return {"nodes": self.node_count, "edges": self.edge_count}

    def clear(self) -> None:
        with self._lock.write():
            self._nodes.clear()
            self._edges.clear()
