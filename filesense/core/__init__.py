"""Core data structures for filesense."""

from .graph import Edge, FileGraph, FileNode
from .history import HistoryStore
from .locks import Deadline, ReadWriteLock
from .models import (
    Candidate,
    EventKind,
    FileMetadata,
    IndexedFile,
    InteractionEvent,
)
from .vectors import (
    FAISSVectorStore,
    SimpleVectorStore,
    VectorStore,
    cosine_similarity,
    create_vector_store,
    keyword_score,
)

__all__ = [
    "InteractionEvent",
    "EventKind",
    "Candidate",
    "FileMetadata",
    "IndexedFile",
    "HistoryStore",
    "FileGraph",
    "FileNode",
    "Edge",
    "ReadWriteLock",
    "Deadline",
    "VectorStore",
    "SimpleVectorStore",
    "FAISSVectorStore",
    "create_vector_store",
    "cosine_similarity",
    "keyword_score",
]
