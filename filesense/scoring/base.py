"""
Scoring model capability interface.

Every model in the ensemble implements the same four operations. The
registry and combiner only ever see this interface, so adding a model
never touches the ranking code.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..core.locks import Deadline
from ..core.models import Candidate, InteractionEvent
from ..profiles.context import ContextFeatures


class ScoringModel(ABC):
    """Abstract base for ensemble members."""

    #: Upper bound on candidates returned by one score() call
    max_candidates: int = 5

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        """Candidates for this context, at most max_candidates of them."""
        pass

    def score_before(
        self, context: ContextFeatures, history: Sequence[InteractionEvent], deadline: Deadline
    ) -> List[Candidate]:
        """score() under a call deadline. Models that wait on a collaborator bound the wait."""
        return self.score(context, history)

    @abstractmethod
    def train(self, history: Sequence[InteractionEvent]) -> None:
        """Refit on a history snapshot. May be a no-op. May raise."""
        pass

    @abstractmethod
    def accuracy(self) -> float:
        """Self-reported accuracy in [0, 1]."""
        pass

    def _candidate(self, path: str, confidence: float, reasoning: str, **kwargs) -> Candidate:
        return Candidate(
            path=path,
            confidence=max(0.0, min(1.0, confidence)),
            source=self.name,
            reasoning=reasoning,
            **kwargs,
        )


class GrowingAccuracyModel(ScoringModel):
    """
    Model whose accuracy grows with the amount of training data.

    train() sets accuracy = min(cap, base + len(history) * rate). Only the
    model itself writes its accuracy, under its own lock.
    """

    base_accuracy: float = 0.7
    accuracy_rate: float = 0.001
    accuracy_cap: float = 0.95

    def __init__(self):
        self._accuracy = self.base_accuracy
        self._accuracy_lock = threading.Lock()

    def train(self, history: Sequence[InteractionEvent]) -> None:
        self.fit(history)
        with self._accuracy_lock:
            self._accuracy = min(self.accuracy_cap, self.base_accuracy + len(history) * self.accuracy_rate)

    def fit(self, history: Sequence[InteractionEvent]) -> None:
        """Model-specific refit hook. Default: nothing to fit."""

    def accuracy(self) -> float:
        with self._accuracy_lock:
            return self._accuracy
