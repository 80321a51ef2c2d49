"""
FileSense Engine - the facade over every component.

Ingestion:
    record_interaction -> history -> profile -> patterns -> graph

Queries (each bounded by a Deadline, never partial):
    predict_next_access -> context -> prediction models -> combine
    get_recommendations -> context -> recommendation models -> combine
    search              -> query processor -> vectors/keywords -> ranker
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .ai import AIBackend
from .config import EngineConfig
from .core.graph import FileGraph
from .core.history import HistoryStore
from .core.locks import Deadline
from .core.models import Candidate, EventKind, IndexedFile, InteractionEvent, utcnow
from .core.vectors import create_vector_store
from .embeddings import create_embeddings
from .errors import ValidationError
from .patterns import PatternLearner
from .profiles import ContextBuilder, ProfileStore
from .scoring import (
    ContextModel,
    ExternalModel,
    ModelRegistry,
    combine_candidates,
    default_prediction_models,
    default_recommendation_models,
)
from .search import QueryProcessor, SemanticIndexer, SemanticSearch

logger = logging.getLogger(__name__)

SEQUENCE_LINKS = 5  # recent files linked to each newly accessed file
SIMILAR_LINKS = 3
SIMILAR_THRESHOLD = 0.5


class Retrainer:
    """Daemon thread that retrains the engine on a fixed interval."""

    def __init__(self, retrain: Callable[[], Any], interval: float, thread_name: str = "filesense-retrainer"):
        self._retrain = retrain
        self._interval = max(0.1, float(interval))
        self._thread_name = thread_name
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        with self._lock:
            thread, self._thread = self._thread, None
        if thread:
            thread.join(timeout=5.0)

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._retrain()
            except Exception as e:
                logger.error(f"Background retraining failed: {e}")


class FileSenseEngine:
    """
    Adaptive file recommendation and retrieval.

    Example:
        engine = FileSenseEngine()
        engine.record_interaction({"subject_id": "u1", "path": "src/app.py", "kind": "open"})
        engine.predict_next_access("u1")
        engine.index_file("docs/plan.md", "Q3 planning notes", {"tags": ["planning"]})
        engine.search("planning docs", "u1")

        with FileSenseEngine(config) as engine:   # background retraining
            ...
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        embeddings=None,
        ai_backend: Optional[AIBackend] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            config: Engine configuration (defaults apply when omitted)
            embeddings: Provider with embed(text); built from config when omitted
            ai_backend: Optional external collaborator for the "ai" models
            clock: Returns the current aware datetime; defaults to UTC now
        """
        self.config = config or EngineConfig()
        self._clock = clock or utcnow
        cfg = self.config
        # Owned pool for every blocking collaborator call
        self.executor = ThreadPoolExecutor(max_workers=cfg.io_workers, thread_name_prefix="filesense-io")

        if embeddings is None:
            options: Dict[str, Any] = {"dimension": cfg.search.vector_dimensions}
            if cfg.embedding_provider == "backend":
                options.update(backend=ai_backend, timeout=cfg.search.embedding_timeout_seconds)
            if cfg.embedding_provider == "backend" and ai_backend is None:
                logger.warning("Embedding provider 'backend' configured without an AI backend; keyword search only")
            else:
                embeddings = create_embeddings(cfg.embedding_provider, **options)
        self.embeddings = embeddings
        dimension = getattr(embeddings, "dimension", None) or cfg.search.vector_dimensions

        # State
        self.history = HistoryStore(cfg.history.capacity, cfg.history.evict_fraction)
        self.learner = PatternLearner()
        self.profiles = ProfileStore(vector_dimensions=dimension)
        self.graph = FileGraph()
        self.vectors = create_vector_store(cfg.search.vector_backend, dimension)
        self.indexer = SemanticIndexer(self.vectors, embeddings)

        # Context
        self.prediction_context = ContextBuilder(
            self.history, self.profiles,
            window=timedelta(seconds=cfg.prediction.prediction_window_seconds),
        )
        self.recommendation_context = ContextBuilder(
            self.history, self.profiles,
            window=timedelta(seconds=cfg.recommendation.context_window_seconds),
        )

        # Models
        self.predictions = ModelRegistry("prediction")
        for model in default_prediction_models(self.learner):
            if isinstance(model, ContextModel) and not cfg.prediction.context_aware:
                continue
            self.predictions.register(model)
        self.recommendations = ModelRegistry("recommendation")
        for model in default_recommendation_models(self.vectors, self.graph):
            self.recommendations.register(model)
        if ai_backend is not None:
            self.predictions.register(ExternalModel(
                ai_backend,
                key="ai",
                request_type="prediction",
                timeout=cfg.ai_timeout_seconds,
                executor=self.executor,
            ))
            self.recommendations.register(ExternalModel(
                ai_backend,
                key="ai_hybrid",
                request_type="recommendation",
                base_accuracy=0.90,
                accuracy_cap=0.98,
                timeout=cfg.ai_timeout_seconds,
                executor=self.executor,
            ))

        # Search
        self.searcher = SemanticSearch(
            QueryProcessor(
                embeddings,
                timeout=cfg.search.embedding_timeout_seconds,
                expansion=cfg.search.query_expansion,
                executor=self.executor,
            ),
            self.indexer,
            self.vectors,
            self.profiles,
            max_results=cfg.search.max_results,
            min_similarity=cfg.search.min_similarity,
            personalized=cfg.search.personalized_ranking,
            personalization_level=cfg.recommendation.personalization_level,
        )

        self._ingest_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._predictions_served = 0
        self._recommendations_served = 0
        self._total_recommendations = 0
        self._accepted = 0
        self._rejected = 0
        self._last_training: Optional[datetime] = None
        self._retrainer = Retrainer(self.retrain, cfg.retraining_interval_seconds)

        logger.info(
            f"FileSense engine ready: {len(self.predictions)} prediction models, "
            f"{len(self.recommendations)} recommendation models, "
            f"embeddings={type(embeddings).__name__ if embeddings else 'none'}, "
            f"vectors={cfg.search.vector_backend}"
        )

    # =========================================================================
    # Ingestion
    # =========================================================================

    def record_interaction(self, event: Union[InteractionEvent, Mapping[str, Any]]) -> InteractionEvent:
        """
        Validate and record one interaction.

        Raises:
            ValidationError: malformed event; nothing is recorded
        """
        if isinstance(event, InteractionEvent):
            event = event.validate()
        elif isinstance(event, Mapping):
            event = InteractionEvent.from_dict(dict(event))
        else:
            raise ValidationError("event must be an InteractionEvent or a mapping")

        now = self._clock()
        with self._ingest_lock:
            self.history.append(event)
            self.profiles.update_on_event(event)

            # An old enough backfill can be evicted by its own append
            accesses = self._access_events(event.subject_id) if event.kind.is_access else []
            position = next((i for i in range(len(accesses) - 1, -1, -1) if accesses[i] is event), None)
            if position is not None:
                if self.config.prediction.learning_enabled:
                    if position == len(accesses) - 1:
                        self.learner.observe(accesses, event.subject_id, now)
                    else:
                        # Backfilled: every window after it shifted
                        self.learner.learn(accesses, event.subject_id, now)
                if self.config.recommendation.real_time_updates:
                    self._link(event, accesses[:position], now)

            if event.kind in (EventKind.RECOMMEND_ACCEPT, EventKind.RECOMMEND_REJECT):
                with self._stats_lock:
                    if event.kind == EventKind.RECOMMEND_ACCEPT:
                        self._accepted += 1
                    else:
                        self._rejected += 1

        logger.debug(f"Recorded {event.kind.value} on {event.path} for {event.subject_id}")
        return event

    def _access_events(self, subject_id: str) -> List[InteractionEvent]:
        return [e for e in self.history.for_subject(subject_id) if e.kind.is_access]

    def _link(self, event: InteractionEvent, previous: Sequence[InteractionEvent], now: datetime) -> None:
        """Touch the file node and add sequence edges to the files just before it."""
        self.graph.touch(event.path, event.timestamp, now)
        linked: List[str] = []
        for prior in reversed(previous):
            if len(linked) >= SEQUENCE_LINKS:
                break
            if prior.path == event.path or prior.path in linked:
                continue
            self.graph.add_relationship(event.path, prior.path, "sequence", 0.5)
            linked.append(prior.path)

    # =========================================================================
    # Queries
    # =========================================================================

    def _deadline(self, timeout: Optional[float]) -> Deadline:
        if timeout is not None and timeout < 0:
            raise ValidationError("timeout must be >= 0")
        return Deadline.after(timeout if timeout is not None else self.config.default_timeout_seconds)

    @staticmethod
    def _check_subject(subject_id: str) -> None:
        if not isinstance(subject_id, str) or not subject_id.strip():
            raise ValidationError("subject_id must be a non-empty string")

    def predict_next_access(self, subject_id: str, timeout: Optional[float] = None) -> List[Candidate]:
        """
        Files the subject is likely to access next, strongest first.

        Raises:
            ValidationError: empty subject
            DeadlineExceeded: timeout elapsed before the result was complete
        """
        self._check_subject(subject_id)
        deadline = self._deadline(timeout)
        cfg = self.config.prediction

        context = self.prediction_context.compute_context(subject_id, self._clock())
        deadline.check("context")
        candidates = self.predictions.score_all(
            context, self.history.snapshot(), cfg.model_weights, deadline, annotate=True
        )
        results = combine_candidates(candidates, cfg.min_confidence, cfg.max_results, separator=", ")
        deadline.check("combination")

        with self._stats_lock:
            self._predictions_served += 1
        logger.debug(f"Predicted {len(results)} files for {subject_id} from {len(candidates)} candidates")
        return results

    def get_recommendations(self, subject_id: str, timeout: Optional[float] = None) -> List[Candidate]:
        """
        Files worth the subject's attention, strongest first.

        Raises:
            ValidationError: empty subject
            DeadlineExceeded: timeout elapsed before the result was complete
        """
        self._check_subject(subject_id)
        deadline = self._deadline(timeout)
        cfg = self.config.recommendation

        context = self.recommendation_context.compute_context(subject_id, self._clock())
        deadline.check("context")
        candidates = self.recommendations.score_all(context, self.history.snapshot(), cfg.model_weights, deadline)
        results = combine_candidates(candidates, cfg.min_confidence, cfg.max_results, separator="; ")
        deadline.check("combination")

        with self._stats_lock:
            self._recommendations_served += 1
            self._total_recommendations += len(results)
        logger.debug(f"Recommended {len(results)} files for {subject_id}")
        return results

    def search(
        self,
        query: str,
        subject_id: str,
        options: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        """
        Free-text search over indexed files, personalized for the subject.

        Raises:
            ValidationError: empty query, empty subject or bad options
            DeadlineExceeded: timeout elapsed before the result was complete
        """
        return self.searcher.search(query, subject_id, options, self._deadline(timeout))

    # =========================================================================
    # Indexing & feedback
    # =========================================================================

    def index_file(
        self,
        path: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        vector: Optional[Sequence[float]] = None,
    ) -> IndexedFile:
        """Index a file for search and link it to similar indexed files."""
        indexed = self.indexer.index_file(path, content, metadata, vector)
        meta = indexed.metadata
        self.graph.add_node(path, tags=meta.tags, categories=meta.categories)

        if indexed.vector is not None:
            neighbors = self.vectors.search(indexed.vector, SIMILAR_THRESHOLD, limit=SIMILAR_LINKS + 1)
            for other, similarity, _meta in neighbors:
                if other != path:
                    self.graph.add_relationship(path, other, "similar", similarity)
        return indexed

    def record_click(self, subject_id: str, path: str) -> bool:
        """Learn from a clicked search result. False if the path is not indexed."""
        self._check_subject(subject_id)
        return self.searcher.record_click(subject_id, path)

    # =========================================================================
    # Training
    # =========================================================================

    def retrain(self) -> Dict[str, Exception]:
        """
        Re-mine patterns and retrain every model from the current history.

        Returns:
            Failures keyed "prediction/<model>" or "recommendation/<model>"
        """
        now = self._clock()
        with self._ingest_lock:
            events = self.history.snapshot()
            if self.config.prediction.learning_enabled:
                for subject_id in self.history.subjects():
                    accesses = [e for e in events if e.subject_id == subject_id and e.kind.is_access]
                    self.learner.learn(accesses, subject_id, now)
            if not self.config.recommendation.real_time_updates:
                self._rebuild_graph(events, now)

        failures: Dict[str, Exception] = {}
        for label, registry in (("prediction", self.predictions), ("recommendation", self.recommendations)):
            for key, error in registry.train_all(events).items():
                failures[f"{label}/{key}"] = error

        with self._stats_lock:
            self._last_training = now
        logger.info(
            f"Retrained on {len(events)} events: {len(self.learner)} patterns, "
            f"{len(failures)} model failure(s)"
        )
        return failures

    def _rebuild_graph(self, events: Sequence[InteractionEvent], now: datetime) -> None:
        seen: Dict[str, List[InteractionEvent]] = {}
        for event in events:
            if not event.kind.is_access:
                continue
            previous = seen.setdefault(event.subject_id, [])
            self._link(event, previous[-SEQUENCE_LINKS * 2:], now)
            previous.append(event)

    def start(self) -> None:
        """Start background retraining."""
        self._retrainer.start()
        logger.info(f"Background retraining every {self.config.retraining_interval_seconds}s")

    def stop(self) -> None:
        self._retrainer.stop()

    def close(self) -> None:
        """Stop retraining and release the worker pool."""
        self.stop()
        self.executor.shutdown(wait=False)

    @property
    def retraining(self) -> bool:
        return self._retrainer.is_running()

    def __enter__(self) -> "FileSenseEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        search_stats = self.searcher.get_stats()
        with self._stats_lock:
            total = self._total_recommendations
            accepted = self._accepted
            metrics = {
                "total_ops": self._predictions_served + self._recommendations_served
                + search_stats["total_searches"],
                "predictions_served": self._predictions_served,
                "recommendations_served": self._recommendations_served,
                "total_recommendations": total,
                "accepted_count": accepted,
                "rejected_count": self._rejected,
                "accuracy": accepted / total if total else 0.0,
                "last_training": self._last_training.isoformat() if self._last_training else None,
            }
        metrics.update({
            "model_count": len(self.predictions) + len(self.recommendations),
            "model_accuracies": {
                "prediction": self.predictions.accuracies(),
                "recommendation": self.recommendations.accuracies(),
            },
            "history_size": len(self.history),
            "pattern_count": len(self.learner),
            "profile_count": len(self.profiles),
            "vector_count": self.vectors.count,
            "indexed_files": len(self.indexer),
            "graph_nodes": self.graph.node_count,
            "graph_edges": self.graph.edge_count,
            "total_searches": search_stats["total_searches"],
            "average_search_latency_ms": search_stats["average_latency_ms"],
            "click_through_rate": search_stats["click_through_rate"],
        })
        return metrics
