"""
Hash-based embeddings - no ML dependencies.

Deterministic vectors built from hashed character n-grams and word tokens.
Paths and identifiers are split on separators and case changes first, so
"userService.py" and "user service" land near each other. Good enough for
offline use and tests; use the local provider for real semantic quality.
"""

import hashlib
import re
from typing import List, Tuple

import numpy as np

_TOKEN_RE = re.compile(r"[A-Za-z][a-z]+|[A-Z]+(?![a-z])|\d+")


def split_identifiers(text: str) -> List[str]:
    """Lowercased word tokens, splitting paths, snake_case and camelCase."""
    return [t.lower() for t in _TOKEN_RE.findall(text)]


class SimpleEmbeddings:
    """
    Deterministic hash embeddings, normalized to unit length.

    Example:
        embeddings = SimpleEmbeddings(dimension=384)
        vec = embeddings.embed("quarterly report draft")
    """

    def __init__(
        self,
        dimension: int = 384,
        ngram_range: Tuple[int, int] = (3, 4),
        word_weight: float = 2.0,
        **kwargs,
    ):
        """
        Args:
            dimension: Output embedding dimension
            ngram_range: Character n-gram sizes, inclusive
            word_weight: Weight of whole-token features relative to n-grams
        """
        self.dimension = dimension
        self.ngram_range = ngram_range
        self.word_weight = word_weight

    def _bucket(self, feature: str, salt: str) -> Tuple[int, float]:
        digest = hashlib.md5(f"{salt}:{feature}".encode()).digest()
        pos = int.from_bytes(digest[:4], "little") % self.dimension
        sign = 1.0 if digest[4] & 1 else -1.0
        return pos, sign

    def embed(self, text: str) -> List[float]:
        """Embedding for one text. Empty text gives the zero vector."""
        vec = np.zeros(self.dimension, dtype=np.float64)
        tokens = split_identifiers(text or "")
        if not tokens:
            return vec.tolist()

        for token in tokens:
            pos, sign = self._bucket(token, "w")
            vec[pos] += sign * self.word_weight
            padded = f"<{token}>"
            lo, hi = self.ngram_range
            for n in range(lo, hi + 1):
                for i in range(len(padded) - n + 1):
                    pos, sign = self._bucket(padded[i:i + n], "c")
                    vec[pos] += sign

        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec.tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]
