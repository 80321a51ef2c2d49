"""
Embedding providers for filesense.

Providers:
- "simple": Hash-based embeddings (just numpy)
- "local": Sentence-transformers (better quality, requires torch)
- "backend": The opaque AI backend's embedding endpoint
- "none": No embeddings; search falls back to keywords
"""

from .simple import SimpleEmbeddings
from .backend import BackendEmbeddings

__all__ = ["SimpleEmbeddings", "BackendEmbeddings", "create_embeddings"]


def create_embeddings(provider: str = "simple", **kwargs):
    """
    Factory function to create an embedding provider.

    Args:
        provider: "simple" (default), "local", "backend" or "none"
        **kwargs: dimension, model_name, backend, timeout

    Returns:
        Provider instance, or None for "none"
    """
    if provider == "simple":
        return SimpleEmbeddings(**kwargs)
    elif provider == "local":
        from .local import LocalEmbeddings
        return LocalEmbeddings(**kwargs)
    elif provider == "backend":
        return BackendEmbeddings(**kwargs)
    elif provider == "none":
        return None
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
