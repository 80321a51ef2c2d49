"""
FileSense - adaptive file recommendation and retrieval.

Learns how people work with their files and answers three questions:
what will I open next, what should I look at, and where is the file
I am describing.

Example:
    from filesense import FileSenseEngine

    engine = FileSenseEngine()
    engine.record_interaction({"subject_id": "u1", "path": "src/app.py", "kind": "open"})
    for candidate in engine.predict_next_access("u1"):
        print(candidate.path, candidate.confidence, candidate.reasoning)
"""

from .ai import AIBackend, AIRequest, AIResponse
from .config import (
    EngineConfig,
    HistoryConfig,
    PredictionConfig,
    RecommendationConfig,
    SearchConfig,
    load_config,
)
from .core import Candidate, EventKind, InteractionEvent
from .engine import FileSenseEngine
from .errors import (
    DeadlineExceeded,
    EmbeddingError,
    FileSenseError,
    ModelError,
    NotFoundError,
    ValidationError,
)

__version__ = "0.1.0"
__all__ = [
    "FileSenseEngine",
    "EngineConfig",
    "HistoryConfig",
    "PredictionConfig",
    "RecommendationConfig",
    "SearchConfig",
    "load_config",
    "InteractionEvent",
    "EventKind",
    "Candidate",
    "AIBackend",
    "AIRequest",
    "AIResponse",
    "FileSenseError",
    "ValidationError",
    "NotFoundError",
    "DeadlineExceeded",
    "EmbeddingError",
    "ModelError",
]
