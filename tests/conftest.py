"""
Shared pytest fixtures for filesense tests.

Provides a fixed clock, an event factory and a deterministic embedding
provider so no test depends on wall-clock time or ML models.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from filesense import EngineConfig, FileSenseEngine
from filesense.ai import AIRequest, AIResponse
from filesense.core.models import EventKind, InteractionEvent

# Monday 2 March 2026, 10:00 UTC
NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def make_event(
    path: str,
    minutes_ago: float = 0,
    subject_id: str = "u1",
    kind: EventKind = EventKind.OPEN,
    **context,
) -> InteractionEvent:
    """Event at NOW - minutes_ago, with any extra kwargs as context."""
    return InteractionEvent(
        subject_id=subject_id,
        path=path,
        kind=kind,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        context=context,
    )


class MockEmbeddingProvider:
    """
    Deterministic mock embedding provider for testing.

    Known texts map to fixed vectors; anything else gets an md5-derived
    vector.
    """

    dimension = 8

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.vectors = dict(vectors or {})
        self.embed_calls = 0

    def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        h = hashlib.md5(text.encode()).hexdigest()
        return [int(h[i:i + 2], 16) / 255.0 for i in range(0, 2 * self.dimension, 2)]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


class FailingEmbeddingProvider:
    dimension = 8

    def embed(self, text: str) -> List[float]:
        raise RuntimeError("embedding service down")


class StaticBackend:
    """AI backend answering every request with the same result."""

    def __init__(self, result=None, error: Optional[str] = None):
        self.result = result
        self.error = error
        self.requests: List[AIRequest] = []

    def process_request(self, request: AIRequest) -> AIResponse:
        self.requests.append(request)
        return AIResponse(id=request.id, result=self.result, error=self.error)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def mock_embeddings():
    return MockEmbeddingProvider()


@pytest.fixture
def config():
    """Engine config with embeddings off (keyword search only)."""
    return EngineConfig(embedding_provider="none")


@pytest.fixture
def engine(config, clock):
    """A fresh engine on the fixed clock, without background retraining."""
    engine = FileSenseEngine(config, clock=clock)
    yield engine
    engine.close()
