"""
Vector Store - embedding similarity search.

Default: numpy (in-process, zero external services)
Optional: FAISS (faster exact search on larger indexes)

This is the "semantic" tier - finds files similar in meaning to a query.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import ValidationError
from .locks import ReadWriteLock

logger = logging.getLogger(__name__)

SearchHit = Tuple[str, float, Dict[str, Any]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in [-1, 1].

    Zero when either vector has zero norm or the lengths differ.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))


def keyword_score(keywords: Sequence[str], content: str) -> float:
    """
    Keyword-overlap fallback score.

    Sum over keywords of occurrences / keyword length, so long specific
    terms weigh more per hit than short common ones.
    """
    content = (content or "").lower()
    score = 0.0
    for keyword in keywords:
        if not keyword:
            continue
        count = content.count(keyword.lower())
        score += count * (1.0 / len(keyword))
    return score


class VectorStore(ABC):
    """Abstract base for vector storage backends."""

    dimension: int

    @abstractmethod
    def upsert(self, path: str, vector: Sequence[float], metadata: Dict[str, Any] = None) -> None:
        """Insert or replace the vector for a path."""
        pass

    @abstractmethod
    def search(
        self,
        vector: Sequence[float],
        min_similarity: float = 0.0,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        """Paths ordered by similarity descending. Returns (path, similarity, metadata)."""
        pass

    @abstractmethod
    def get(self, path: str) -> Optional[Tuple[List[float], Dict[str, Any]]]:
        """Vector and metadata for a path."""
        pass

    @abstractmethod
    def delete(self, path: str) -> bool:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def paths(self) -> List[str]:
        pass

    @property
    @abstractmethod
    def count(self) -> int:
        """Number of vectors stored."""
        pass

    def _check_dimension(self, vector: Sequence[float]) -> np.ndarray:
        vec = np.asarray(vector, dtype=np.float32)
        if vec.ndim != 1 or vec.shape[0] != self.dimension:
            raise ValidationError(
                f"Vector dimension {vec.shape[-1] if vec.ndim else 0} does not match store dimension {self.dimension}"
            )
        if not np.all(np.isfinite(vec)):
            raise ValidationError("Vector contains non-finite values")
        return vec


class SimpleVectorStore(VectorStore):
    """
    In-memory numpy vector store.

    Brute-force cosine similarity over every stored vector.
    Good for small indexes (<50k vectors) and for tests.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension
        self._vectors: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._lock = ReadWriteLock()
        logger.info(f"Simple vector store initialized (dim={dimension})")

    def upsert(self, path: str, vector: Sequence[float], metadata: Dict[str, Any] = None) -> None:
        vec = self._check_dimension(vector)
        with self._lock.write():
            self._vectors[path] = vec
            self._metadata[path] = dict(metadata or {})

    def search(
        self,
        vector: Sequence[float],
        min_similarity: float = 0.0,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        with self._lock.read():
            items = [(p, v, self._metadata.get(p, {})) for p, v in self._vectors.items()]

        results = []
        for path, vec, metadata in items:
            similarity = cosine_similarity(vector, vec)
            if similarity >= min_similarity:
                results.append((path, similarity, metadata))

        # Stable: equal similarities keep insertion order
        results.sort(key=lambda x: x[1], reverse=True)
        return results[:limit] if limit else results

    def get(self, path: str) -> Optional[Tuple[List[float], Dict[str, Any]]]:
        with self._lock.read():
            if path not in self._vectors:
                return None
            return self._vectors[path].tolist(), dict(self._metadata.get(path, {}))

    def delete(self, path: str) -> bool:
        with self._lock.write():
            self._metadata.pop(path, None)
            return self._vectors.pop(path, None) is not None

    def clear(self) -> None:
        with self._lock.write():
            self._vectors.clear()
            self._metadata.clear()

    def paths(self) -> List[str]:
        with self._lock.read():
            return list(self._vectors)

    @property
    def count(self) -> int:
        with self._lock.read():
            return len(self._vectors)


class FAISSVectorStore(VectorStore):
    """
    FAISS-backed vector store.

    Vectors are L2-normalized and held in an inner-product index, so the
    inner product is the cosine similarity. Zero vectors stay zero and
    score 0 against everything.

    Requires: pip install faiss-cpu
    """

    def __init__(self, dimension: int = 384):
        try:
            import faiss
        except ImportError:
            raise ImportError(
                "FAISS vector store requires: pip install faiss-cpu\n"
                "Or use backend='simple' for the numpy store."
            )

        self.faiss = faiss
        self.dimension = dimension
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        self._path_to_id: Dict[str, int] = {}
        self._id_to_path: Dict[int, str] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._next_id = 0
        self._lock = ReadWriteLock()
        logger.info(f"FAISS vector store initialized (dim={dimension})")

    @staticmethod
    def _normalize(vec: np.ndarray) -> np.ndarray:
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec = vec / norm
        return vec.astype(np.float32).reshape(1, -1)

    def upsert(self, path: str, vector: Sequence[float], metadata: Dict[str, Any] = None) -> None:
        vec = self._normalize(self._check_dimension(vector))
        with self._lock.write():
            old_id = self._path_to_id.get(path)
            if old_id is not None:
                self.index.remove_ids(np.array([old_id], dtype=np.int64))
                self._id_to_path.pop(old_id, None)
            faiss_id = self._next_id
            self._next_id += 1
            self.index.add_with_ids(vec, np.array([faiss_id], dtype=np.int64))
            self._path_to_id[path] = faiss_id
            self._id_to_path[faiss_id] = path
            self._metadata[path] = dict(metadata or {})

    def search(
        self,
        vector: Sequence[float],
        min_similarity: float = 0.0,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        query = np.asarray(vector, dtype=np.float32)
        if query.ndim != 1 or query.shape[0] != self.dimension:
            logger.warning(f"Query dimension {query.shape[-1] if query.ndim else 0} != {self.dimension}, no results")
            return []
        query = self._normalize(query)

        with self._lock.read():
            total = self.index.ntotal
            if total == 0:
                return []
            k = min(limit, total) if limit else total
            scores, ids = self.index.search(query, k)
            results = []
            for score, faiss_id in zip(scores[0], ids[0]):
                if faiss_id == -1:
                    continue
                path = self._id_to_path.get(int(faiss_id))
                if path is None:
                    continue
                similarity = max(-1.0, min(1.0, float(score)))
                if similarity >= min_similarity:
                    results.append((path, similarity, dict(self._metadata.get(path, {}))))

        results.sort(key=lambda x: x[1], reverse=True)
        return results

    def get(self, path: str) -> Optional[Tuple[List[float], Dict[str, Any]]]:
        with self._lock.read():
            faiss_id = self._path_to_id.get(path)
            if faiss_id is None:
                return None
            vec = self.index.reconstruct(faiss_id)
            return vec.tolist(), dict(self._metadata.get(path, {}))

    def delete(self, path: str) -> bool:
        with self._lock.write():
            faiss_id = self._path_to_id.pop(path, None)
            if faiss_id is None:
                return False
            self.index.remove_ids(np.array([faiss_id], dtype=np.int64))
            self._id_to_path.pop(faiss_id, None)
            self._metadata.pop(path, None)
            return True

    def clear(self) -> None:
        with self._lock.write():
            self.index.reset()
            self._path_to_id.clear()
            self._id_to_path.clear()
            self._metadata.clear()

    def paths(self) -> List[str]:
        with self._lock.read():
            return list(self._path_to_id)

    @property
    def count(self) -> int:
        with self._lock.read():
            return len(self._path_to_id)


def create_vector_store(backend: str = "simple", dimension: int = 384) -> VectorStore:
    """
    Factory function to create a vector store.

    Args:
        backend: "simple" or "faiss"
        dimension: Vector dimension (default 384 for MiniLM)
    """
    if backend == "simple":
        return SimpleVectorStore(dimension=dimension)
    elif backend == "faiss":
        return FAISSVectorStore(dimension=dimension)
    else:
        raise ValueError(f"Unknown vector backend: {backend}")
