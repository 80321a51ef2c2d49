"""
Model Registry - the ensemble.

Maps a key to a scoring model, applies per-model weights and shields the
caller from model failures: a model that raises contributes nothing
instead of failing the request.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from ..core.locks import Deadline
from ..core.models import Candidate, InteractionEvent
from ..errors import DeadlineExceeded
from ..profiles.context import ContextFeatures
from .base import ScoringModel

logger = logging.getLogger(__name__)


class ModelRegistry:
    """
    Ordered collection of scoring models.

    Models are registered at startup and never removed, so lookups are
    lock-free. Iteration order is registration order and drives the
    order of merged reasons in combined candidates.

    Example:
        registry = ModelRegistry("prediction")
        registry.register(FrequencyModel())
        registry.register(PatternModel(learner))

        candidates = registry.score_all(context, history, overrides={"pattern": 0.9})
    """

    def __init__(self, label: str = "models"):
        self.label = label
        self._models: "OrderedDict[str, ScoringModel]" = OrderedDict()

    def register(self, model: ScoringModel, key: Optional[str] = None) -> str:
        key = key or model.name
        if key in self._models:
            raise ValueError(f"Model {key!r} already registered in {self.label}")
        self._models[key] = model
        logger.debug(f"Registered {self.label} model: {key}")
        return key

    def get(self, key: str) -> Optional[ScoringModel]:
        return self._models.get(key)

    def names(self) -> List[str]:
        return list(self._models)

    def weight(self, key: str, overrides: Optional[Mapping[str, float]] = None) -> float:
        """Configured override, else the model's own accuracy, else 1.0."""
        if overrides and key in overrides:
            return float(overrides[key])
        model = self._models.get(key)
        if model is not None:
            try:
                return float(model.accuracy())
            except Exception as e:
                logger.warning(f"{self.label}/{key}: accuracy() failed, using 1.0: {e}")
        return 1.0

    def score_all(
        self,
        context: ContextFeatures,
        history: Sequence[InteractionEvent],
        overrides: Optional[Mapping[str, float]] = None,
        deadline: Optional[Deadline] = None,
        annotate: bool = False,
    ) -> List[Candidate]:
        """
        Weighted candidates from every model, in registry order.

        Each candidate's confidence is multiplied by its model's weight and
        its source set to the registry key. With annotate=True the key is
        also appended to the reasoning.

        Raises:
            DeadlineExceeded: deadline passed between models
        """
        deadline = deadline or Deadline()
        results: List[Candidate] = []
        for key, model in self._models.items():
            deadline.check(f"{self.label}/{key}")
            try:
                candidates = model.score_before(context, history, deadline) or []
            except DeadlineExceeded:
                raise
            except Exception as e:
                logger.warning(f"{self.label}/{key}: score() failed, skipping: {e}")
                continue

            weight = self.weight(key, overrides)
            limit = getattr(model, "max_candidates", None)
            for candidate in candidates[:limit] if limit else candidates:
                weighted = candidate.copy()
                weighted.confidence = candidate.confidence * weight
                weighted.source = key
                if annotate:
                    weighted.reasoning = f"{candidate.reasoning} ({key})"
                results.append(weighted)
        deadline.check(f"{self.label}/scoring")
        return results

    def train_all(self, history: Sequence[InteractionEvent]) -> Dict[str, Exception]:
        """Retrain every model. Returns the failures by key."""
        failures: Dict[str, Exception] = {}
        for key, model in self._models.items():
            try:
                model.train(history)
            except Exception as e:
                logger.error(f"Failed to retrain {self.label} model {key}: {e}")
                failures[key] = e
        return failures

    def accuracies(self) -> Dict[str, float]:
        return {key: self.weight(key) for key in self._models}

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, key: str) -> bool:
        return key in self._models
