"""
Embeddings served by the opaque AI backend.

Wraps an AIBackend so it can be used anywhere an embedding provider is
expected. Every failure surfaces as EmbeddingError; callers decide how
to degrade.
"""

import logging
import numbers
from typing import List

from ..ai import AIBackend, AIRequest, new_request_id
from ..errors import EmbeddingError

logger = logging.getLogger(__name__)


class BackendEmbeddings:
    """Embedding provider backed by AIBackend.process_request."""

    def __init__(self, backend: AIBackend, dimension: int = 384, timeout: float = 3.0, **kwargs):
        if backend is None:
            raise ValueError("BackendEmbeddings requires a backend")
        self.backend = backend
        self.dimension = dimension
        self.timeout = timeout

    def embed(self, text: str) -> List[float]:
        request = AIRequest(
            id=new_request_id("query-vector"),
            type="embedding",
            input=text,
            parameters={"task": "text_embedding"},
            timeout=self.timeout,
        )
        try:
            response = self.backend.process_request(request)
        except Exception as e:
            raise EmbeddingError(f"Embedding backend failed: {e}") from e

        if not response.ok:
            raise EmbeddingError(f"Embedding backend returned error: {response.error}")

        result = response.result
        if not isinstance(result, (list, tuple)) or not result:
            raise EmbeddingError("Invalid vector response")
        if not all(isinstance(x, numbers.Real) and not isinstance(x, bool) for x in result):
            raise EmbeddingError("Invalid vector response: non-numeric values")
        return [float(x) for x in result]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]
