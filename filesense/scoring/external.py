"""
Externally-backed scoring model.

Delegates scoring to the opaque AI backend. Whatever goes wrong (no
backend, an error response, a malformed result, an exception) the model
answers with an empty candidate list so the ensemble stays available.
"""

import logging
import numbers
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, List, Optional, Sequence

from ..ai import AIBackend, AIRequest, new_request_id
from ..core.locks import Deadline, call_with_timeout
from ..core.models import Candidate, InteractionEvent
from ..profiles.context import ContextFeatures
from .base import GrowingAccuracyModel

logger = logging.getLogger(__name__)


class ExternalModel(GrowingAccuracyModel):
    """
    Scoring model that asks the AI backend for candidates.

    The backend receives the context plus the subject's recent paths and
    must answer with a list of {"path", "confidence", "reasoning"} dicts.
    """

    accuracy_rate = 0.001

    def __init__(
        self,
        backend: Optional[AIBackend],
        key: str = "ai",
        request_type: str = "prediction",
        base_accuracy: float = 0.95,
        accuracy_cap: float = 0.98,
        timeout: float = 3.0,
        recent_limit: int = 20,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.base_accuracy = base_accuracy
        self.accuracy_cap = accuracy_cap
        super().__init__()
        self.backend = backend
        self._key = key
        self.request_type = request_type
        self.timeout = timeout
        self.recent_limit = recent_limit
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"filesense-{key}")

    @property
    def name(self) -> str:
        return self._key

    def score(self, context: ContextFeatures, history: Sequence[InteractionEvent]) -> List[Candidate]:
        return self._request(context, history, self.timeout)

    def score_before(
        self, context: ContextFeatures, history: Sequence[InteractionEvent], deadline: Deadline
    ) -> List[Candidate]:
        """Wait on the backend no longer than the call deadline allows."""
        return self._request(context, history, deadline.bound(self.timeout))

    def _request(self, context: ContextFeatures, history: Sequence[InteractionEvent], timeout: float) -> List[Candidate]:
        if self.backend is None:
            return []

        recent = [e.path for e in history if e.subject_id == context.subject_id][-self.recent_limit:]
        request = AIRequest(
            id=new_request_id(self.request_type),
            type=self.request_type,
            input={"context": context.to_dict(), "recent_paths": recent},
            parameters={"max_candidates": self.max_candidates},
            timeout=timeout,
        )
        try:
            response = call_with_timeout(self.executor, self.backend.process_request, timeout, request)
        except FuturesTimeout:
            logger.warning(f"{self.name}: backend timed out after {timeout:.2f}s")
            return []
        except Exception as e:
            logger.warning(f"{self.name}: backend request failed: {e}")
            return []

        if not response.ok:
            logger.warning(f"{self.name}: backend returned error: {response.error}")
            return []

        return self._parse(response.result)

    def _parse(self, result: Any) -> List[Candidate]:
        if not isinstance(result, list):
            logger.warning(f"{self.name}: unexpected result type {type(result).__name__}")
            return []

        candidates = []
        for item in result:
            if not isinstance(item, dict):
                continue
            path = item.get("path")
            confidence = item.get("confidence")
            if not isinstance(path, str) or not path:
                continue
            if not isinstance(confidence, numbers.Real) or isinstance(confidence, bool):
                continue
            candidates.append(self._candidate(
                path,
                float(confidence),
                str(item.get("reasoning") or "Suggested by AI backend"),
                tags=[t for t in item.get("tags", []) if isinstance(t, str)],
            ))
            if len(candidates) >= self.max_candidates:
                break
        return candidates
