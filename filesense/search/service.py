"""
Semantic search service.

query -> QueryProcessor -> vector search (or keyword fallback)
      -> personalization -> filters -> cap -> caller
"""

import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Optional

from ..core.locks import Deadline
from ..core.models import Candidate, utcnow
from ..core.vectors import VectorStore
from ..errors import ValidationError
from ..profiles.profile import ProfileStore
from .index import SemanticIndexer
from .query import ProcessedQuery, QueryProcessor
from .ranker import rank_results

logger = logging.getLogger(__name__)

SEARCH_OPTIONS = ("file_types", "max_size")


@dataclass
class SearchEvent:
    """One completed search, kept for metrics."""
    query_id: str
    subject_id: str
    query: str
    intent: str
    result_paths: List[str]
    latency: float  # seconds
    used_vector: bool
    timestamp: datetime = field(default_factory=utcnow)
    clicked: List[str] = field(default_factory=list)


def validate_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Normalize search options; unknown keys and bad types are rejected."""
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise ValidationError("options must be a mapping")
    unknown = set(options) - set(SEARCH_OPTIONS)
    if unknown:
        raise ValidationError(f"Unknown search options: {', '.join(sorted(unknown))}")

    normalized: Dict[str, Any] = {}
    file_types = options.get("file_types")
    if file_types is not None:
        if isinstance(file_types, str):
            file_types = [file_types]
        if not all(isinstance(t, str) and t.strip(".") for t in file_types):
            raise ValidationError("file_types must be a list of non-empty strings")
        normalized["file_types"] = {t.lower().lstrip(".") for t in file_types}
    max_size = options.get("max_size")
    if max_size is not None:
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 0:
            raise ValidationError("max_size must be a non-negative integer")
        normalized["max_size"] = max_size
    return normalized


def apply_filters(
    candidates: List[Candidate],
    options: Mapping[str, Any],
    query: Optional[ProcessedQuery] = None,
) -> List[Candidate]:
    """Keep candidates matching file type, size and extension entities."""
    file_types = options.get("file_types")
    max_size = options.get("max_size")
    extensions = set(query.extensions) if query is not None else set()

    filtered = []
    for candidate in candidates:
        file_type = (candidate.file_type or "").lower().lstrip(".")
        if file_types is not None and file_type not in file_types:
            continue
        if extensions and file_type not in extensions:
            continue
        if max_size is not None and (candidate.size or 0) > max_size:
            continue
        filtered.append(candidate)
    return filtered


class SemanticSearch:
    """
    Free-text search over indexed files.

    Example:
        search = SemanticSearch(processor, indexer, vectors, profiles)
        results = search.search("latest billing docs", "u1", {"file_types": ["md"]})
    """

    def __init__(
        self,
        processor: QueryProcessor,
        indexer: SemanticIndexer,
        vectors: VectorStore,
        profiles: ProfileStore,
        max_results: int = 20,
        min_similarity: float = 0.1,
        personalized: bool = True,
        personalization_level: str = "medium",
        history_limit: int = 10000,
        history_trim: int = 1000,
    ):
        self.processor = processor
        self.indexer = indexer
        self.vectors = vectors
        self.profiles = profiles
        self.max_results = max_results
        self.min_similarity = min_similarity
        self.personalized = personalized
        self.personalization_level = personalization_level
        self.history_limit = history_limit
        self.history_trim = history_trim

        self._events: Deque[SearchEvent] = deque()
        self._total_searches = 0
        self._average_latency = 0.0
        self._lock = threading.Lock()

    def search(
        self,
        query: str,
        subject_id: str,
        options: Optional[Mapping[str, Any]] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[Candidate]:
        """
        Run one search.

        Raises:
            ValidationError: empty query, empty subject or bad options
            DeadlineExceeded: deadline passed before the result was complete
        """
        if not isinstance(subject_id, str) or not subject_id.strip():
            raise ValidationError("subject_id must be a non-empty string")
        opts = validate_options(options)
        deadline = deadline or Deadline()
        start = time.monotonic()

        processed = self.processor.process(query, deadline)
        deadline.check("query processing")

        candidates = self.vector_search(processed)
        deadline.check("retrieval")

        profile = None
        if self.personalized:
            self.profiles.get(subject_id)  # created on first search
            profile = self.profiles.snapshot(subject_id)
        ranked = rank_results(candidates, profile, level=self.personalization_level)
        results = apply_filters(ranked, opts, processed)[:self.max_results]
        deadline.check("ranking")

        latency = time.monotonic() - start
        self._record(SearchEvent(
            query_id=f"search_{uuid.uuid4().hex[:12]}",
            subject_id=subject_id,
            query=query,
            intent=processed.intent,
            result_paths=[c.path for c in results],
            latency=latency,
            used_vector=processed.vector is not None,
        ))
        logger.debug(
            f"Search for {subject_id!r} ({processed.intent}) returned {len(results)} results "
            f"in {latency * 1000:.1f}ms"
        )
        return results

    def vector_search(self, query: ProcessedQuery) -> List[Candidate]:
        """Cosine search when the query has a vector, keyword overlap otherwise."""
        if query.vector is None:
            return self.indexer.keyword_search(query.keywords)

        results = []
        for path, similarity, _meta in self.vectors.search(query.vector, self.min_similarity):
            indexed = self.indexer.get(path)
            if indexed is None:
                continue
            candidate = self.indexer.to_candidate(indexed, similarity, query.keywords, "vector")
            candidate.similarity = similarity
            candidate.reasoning = f"Semantic similarity {similarity:.2f}"
            results.append(candidate)
        return results

    def record_click(self, subject_id: str, path: str) -> bool:
        """Learn from a clicked result. False if the path is not indexed."""
        indexed = self.indexer.get(path)
        if indexed is None:
            return False
        meta = indexed.metadata
        self.profiles.record_click(subject_id, meta.file_type, meta.categories)
        if indexed.vector is not None:
            self.profiles.update_personal_vector(subject_id, indexed.vector)
        with self._lock:
            for event in reversed(self._events):
                if event.subject_id == subject_id and path in event.result_paths:
                    event.clicked.append(path)
                    break
        return True

    def _record(self, event: SearchEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._total_searches += 1
            n = self._total_searches
            self._average_latency = (self._average_latency * (n - 1) + event.latency) / n
            if len(self._events) > self.history_limit:
                for _ in range(min(self.history_trim, len(self._events))):
                    self._events.popleft()

    def recent_searches(self, limit: int = 20) -> List[SearchEvent]:
        with self._lock:
            return list(self._events)[-limit:]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            clicked = sum(1 for e in self._events if e.clicked)
            return {
                "total_searches": self._total_searches,
                "average_latency_ms": self._average_latency * 1000.0,
                "search_history_size": len(self._events),
                "click_through_rate": clicked / len(self._events) if self._events else 0.0,
            }
