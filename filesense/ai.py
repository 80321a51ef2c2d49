"""
Opaque AI collaborator contract.

filesense never talks to a model server directly. An optional backend
receives AIRequest objects and answers with AIResponse objects; the
embedding adapter and the externally-backed scoring models are the only
callers.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .core.models import utcnow


def new_request_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class AIRequest:
    """A single request to the AI backend."""

    type: str  # "embedding", "recommendation", "prediction"
    input: Any
    parameters: Dict[str, Any] = field(default_factory=dict)
    timeout: float = 3.0  # seconds
    id: str = field(default_factory=lambda: new_request_id("req"))
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class AIResponse:
    """The backend's answer. `error` set means the request failed."""

    id: str
    result: Any = None
    confidence: float = 0.0
    error: Optional[str] = None
    latency: float = 0.0  # seconds

    @property
    def ok(self) -> bool:
        return self.error is None


@runtime_checkable
class AIBackend(Protocol):
    """Anything that can process an AIRequest."""

    def process_request(self, request: AIRequest) -> AIResponse:
        ...
