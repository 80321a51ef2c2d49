"""
Local embeddings using sentence-transformers.

Runs fully offline once the model is cached. File contents never leave
the machine.
"""

from typing import List, Optional
import logging

from ..errors import EmbeddingError

logger = logging.getLogger(__name__)

# Query/document models that embed file text and short queries in one space
SEARCH_MODELS = {
    "all-MiniLM-L6-v2": 384,
    "multi-qa-MiniLM-L6-cos-v1": 384,
    "all-mpnet-base-v2": 768,
}


class LocalEmbeddings:
    """
    Sentence-transformers provider for file contents and search queries.

    Vectors are unit length so the vector stores can compare them with a
    plain dot product. Inputs longer than max_chars are cut, since file
    contents can be far larger than the model's context.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        max_chars: int = 8000,
        device: Optional[str] = None,
        **kwargs,
    ):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError(
                "Local embeddings require: pip install 'filesense[local]'\n"
                "This will also install torch."
            )

        self.model_name = model_name
        self.max_chars = max_chars
        self.model = SentenceTransformer(model_name, device=device)
        self.dimension = SEARCH_MODELS.get(model_name) or self.model.get_sentence_embedding_dimension()
        logger.info(f"Loaded local embedding model {model_name} (dim={self.dimension}, device={device or 'auto'})")

    def _prepare(self, text: str) -> str:
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("cannot embed empty text")
        return text[:self.max_chars]

    def embed(self, text: str) -> List[float]:
        prepared = self._prepare(text)
        try:
            vector = self.model.encode(prepared, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingError(f"{self.model_name} failed to encode: {e}") from e
        return vector.tolist()

    def embed_batch(self, texts: List[str], batch_size: int = 32) -> List[List[float]]:
        """Embed many files at once, e.g. when indexing a directory."""
        prepared = [self._prepare(t) for t in texts]
        try:
            vectors = self.model.encode(
                prepared,
                convert_to_numpy=True,
                normalize_embeddings=True,
                batch_size=batch_size,
                show_progress_bar=len(prepared) > 100,
            )
        except Exception as e:
            raise EmbeddingError(f"{self.model_name} failed to encode {len(prepared)} texts: {e}") from e
        return vectors.tolist()
