"""
Semantic Indexer - the write path into search.

Keeps the text of every indexed file for keyword fallback and snippets,
and pushes content vectors into the vector store when the embedding
provider can produce one.
"""

import logging
import posixpath
from typing import Any, Dict, List, Optional, Sequence

from ..core.locks import ReadWriteLock
from ..core.models import Candidate, FileMetadata, IndexedFile, utcnow
from ..core.vectors import VectorStore, keyword_score
from ..errors import ValidationError

logger = logging.getLogger(__name__)


def extract_title(path: str) -> str:
    """Basename of the path."""
    name = posixpath.basename(path.replace("\\", "/").rstrip("/"))
    return name or path


def extract_snippet(content: str, keywords: Sequence[str], width: int = 160) -> str:
    """Window of text around the first keyword hit, else the head."""
    if not content:
        return ""
    text = " ".join(content.split())
    lowered = text.lower()
    hits = [lowered.find(k.lower()) for k in keywords if k]
    hits = [h for h in hits if h >= 0]
    if not hits:
        return text[:width] + ("..." if len(text) > width else "")
    start = max(0, min(hits) - width // 4)
    end = min(len(text), start + width)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet


class SemanticIndexer:
    """
    Index of file contents and metadata.

    Every (re)index bumps a global index version, so callers can tell
    which snapshot of a file a result came from.

    Example:
        indexer = SemanticIndexer(vector_store, embeddings)
        indexer.index_file("docs/plan.md", "Q3 plan ...", {"tags": ["planning"]})
        indexer.keyword_search(["plan"])
    """

    def __init__(self, vectors: VectorStore, embeddings=None, max_content_chars: int = 100_000):
        self.vectors = vectors
        self.embeddings = embeddings
        self.max_content_chars = max_content_chars
        self._files: Dict[str, IndexedFile] = {}
        self._version = 0
        self._lock = ReadWriteLock()

    def index_file(
        self,
        path: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        vector: Optional[Sequence[float]] = None,
    ) -> IndexedFile:
        """
        Add or refresh a file in the index.

        Args:
            path: File path (the index key)
            content: Extracted text or summary
            metadata: file_type, size, modified, tags, categories, importance
            vector: Precomputed embedding; otherwise the provider is asked

        Returns:
            The stored IndexedFile
        """
        if not isinstance(path, str) or not path.strip():
            raise ValidationError("path must be a non-empty string")
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        content = content[:self.max_content_chars]
        meta = FileMetadata.from_dict(metadata, path)

        if vector is None and self.embeddings is not None and content.strip():
            try:
                vector = self.embeddings.embed(f"{extract_title(path)}\n{content}")
            except Exception as e:
                logger.warning(f"Embedding failed for {path}, indexed for keyword search only: {e}")
                vector = None
        vector = [float(x) for x in vector] if vector is not None else None

        if vector is not None:
            self.vectors.upsert(path, vector, meta.to_dict())
        else:
            self.vectors.delete(path)

        with self._lock.write():
            self._version += 1
            indexed = IndexedFile(
                path=path,
                content=content,
                metadata=meta,
                vector=vector,
                indexed_at=utcnow(),
                index_version=self._version,
            )
            self._files[path] = indexed

        logger.info(f"Indexed {path} (version {indexed.index_version}, vector={'yes' if vector else 'no'})")
        return indexed

    def remove(self, path: str) -> bool:
        self.vectors.delete(path)
        with self._lock.write():
            return self._files.pop(path, None) is not None

    def get(self, path: str) -> Optional[IndexedFile]:
        with self._lock.read():
            return self._files.get(path)

    def to_candidate(self, indexed: IndexedFile, score: float, keywords: Sequence[str], source: str) -> Candidate:
        meta = indexed.metadata
        return Candidate(
            path=indexed.path,
            confidence=score,
            source=source,
            reasoning=f"{source} match",
            tags=list(meta.tags),
            file_type=meta.file_type,
            categories=list(meta.categories),
            category=meta.categories[0] if meta.categories else None,
            size=meta.size,
            modified=meta.modified,
            title=extract_title(indexed.path),
            snippet=extract_snippet(indexed.content, keywords),
        )

    def keyword_search(self, keywords: Sequence[str]) -> List[Candidate]:
        """Keyword-overlap fallback. Only files scoring above zero."""
        with self._lock.read():
            files = list(self._files.values())

        results = []
        for indexed in files:
            score = keyword_score(keywords, indexed.content)
            if score > 0:
                results.append(self.to_candidate(indexed, score, keywords, "keyword"))
        results.sort(key=lambda c: c.confidence, reverse=True)
        return results

    @property
    def version(self) -> int:
        with self._lock.read():
            return self._version

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._files)
