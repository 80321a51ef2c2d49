"""
Query Processor - understand a free-text file search.

Turns raw text into keywords, extension filters, an intent label and,
when an embedding provider answers in time, a query vector.
"""

import logging
import numbers
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.locks import Deadline, call_with_timeout
from ..core.models import utcnow
from ..errors import ValidationError

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to",
    "for", "of", "with", "by", "is", "are", "was", "were", "be", "been",
})

DEFAULT_SYNONYMS: Dict[str, List[str]] = {
    "doc": ["document"],
    "docs": ["documents", "documentation"],
    "notes": ["note", "memo"],
    "pic": ["picture", "image"],
    "img": ["image"],
    "photo": ["image", "picture"],
    "image": ["picture", "photo"],
    "code": ["source", "script"],
    "config": ["configuration", "settings"],
    "settings": ["config", "configuration"],
    "test": ["spec", "tests"],
    "recent": ["latest", "new"],
    "big": ["large"],
    "large": ["big"],
}

# Ordered: first match wins
INTENT_RULES = (
    ("recent", ("recent", "latest")),
    ("size", ("large", "big")),
    ("code", ("code", "function")),
    ("document", ("document", "text")),
    ("image", ("image", "photo")),
)

MAX_QUERY_LENGTH = 2000


@dataclass
class ProcessedQuery:
    """A query after expansion, extraction and (optional) embedding."""

    original: str
    expanded: str
    tokens: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    intent: str = "general"
    vector: Optional[List[float]] = None
    processed_at: datetime = field(default_factory=utcnow)

    @property
    def extensions(self) -> List[str]:
        """Entity extension filters without the leading dot."""
        return [e[1:] for e in self.entities]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "expanded": self.expanded,
            "keywords": list(self.keywords),
            "entities": list(self.entities),
            "intent": self.intent,
            "has_vector": self.vector is not None,
        }


def tokenize(text: str) -> List[str]:
    return text.lower().split()


def expand_tokens(tokens: Sequence[str], synonyms: Mapping[str, Sequence[str]]) -> List[str]:
    """Append synonyms after each token. Original tokens are never dropped."""
    expanded: List[str] = []
    for token in tokens:
        expanded.append(token)
        expanded.extend(synonyms.get(token, ()))
    return expanded


def extract_entities(tokens: Sequence[str]) -> List[str]:
    """Tokens like ".py" are file-extension filters."""
    entities = []
    for token in tokens:
        if token.startswith(".") and len(token) > 1 and token not in entities:
            entities.append(token)
    return entities


def extract_keywords(tokens: Sequence[str]) -> List[str]:
    return [t for t in tokens if t not in STOP_WORDS and len(t) > 2]


def classify_intent(text: str) -> str:
    text = text.lower()
    for intent, needles in INTENT_RULES:
        if any(needle in text for needle in needles):
            return intent
    return "general"


class QueryProcessor:
    """
    Expand and analyze search queries.

    Example:
        processor = QueryProcessor(embeddings=SimpleEmbeddings())
        query = processor.process("recent docs about billing .md")
        query.intent     # "recent"
        query.entities   # [".md"]
        query.vector     # list of floats, or None if embedding failed
    """

    def __init__(
        self,
        embeddings=None,
        synonyms: Optional[Mapping[str, Sequence[str]]] = None,
        timeout: float = 3.0,
        expansion: bool = True,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Args:
            embeddings: Provider with embed(text) -> list of floats, or None
            synonyms: Expansion table (defaults to DEFAULT_SYNONYMS)
            timeout: Seconds to wait for the embedding provider
            expansion: Apply synonym expansion
            executor: Pool that runs embedding calls; a private one when omitted
        """
        self.embeddings = embeddings
        self.synonyms = dict(DEFAULT_SYNONYMS if synonyms is None else synonyms)
        self.timeout = timeout
        self.expansion = expansion
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="filesense-query")

    def process(self, raw: str, deadline: Optional[Deadline] = None) -> ProcessedQuery:
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError("query must be a non-empty string")
        if len(raw) > MAX_QUERY_LENGTH:
            raise ValidationError(f"query exceeds {MAX_QUERY_LENGTH} characters")

        tokens = tokenize(raw)
        expanded = expand_tokens(tokens, self.synonyms) if self.expansion else list(tokens)
        expanded_text = " ".join(expanded)

        query = ProcessedQuery(
            original=raw,
            expanded=expanded_text,
            tokens=expanded,
            keywords=extract_keywords(expanded),
            entities=extract_entities(expanded),
            intent=classify_intent(expanded_text),
        )
        query.vector = self.embed_query(expanded_text, deadline)
        return query

    def embed_query(self, text: str, deadline: Optional[Deadline] = None) -> Optional[List[float]]:
        """Best-effort query vector. Any failure or timeout gives None."""
        if self.embeddings is None:
            return None
        timeout = deadline.bound(self.timeout) if deadline else self.timeout
        try:
            vector = call_with_timeout(self.executor, self.embeddings.embed, timeout, text)
        except FuturesTimeout:
            logger.warning(f"Query embedding timed out after {timeout:.2f}s, using keyword search")
            return None
        except Exception as e:
            logger.warning(f"Query embedding failed, using keyword search: {e}")
            return None

        if not vector or not all(isinstance(x, numbers.Real) for x in vector):
            logger.warning("Query embedding returned an unusable vector, using keyword search")
            return None
        vector = [float(x) for x in vector]
        if not any(vector):
            return None
        return vector
