"""
Error taxonomy for filesense.

Model-level and embedding-level failures are absorbed inside the core
(logged, replaced by empty results). Only the errors below reach callers.
"""


class FileSenseError(Exception):
    """Base class for all filesense errors."""


class ValidationError(FileSenseError, ValueError):
    """Malformed event, query or options. Raised before any state is touched."""


class NotFoundError(FileSenseError, KeyError):
    """Unknown subject where a profile was required and creation was disabled."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class DeadlineExceeded(FileSenseError, TimeoutError):
    """A call deadline expired. No partial result accompanies it."""


class EmbeddingError(FileSenseError):
    """An embedding provider failed or returned an unusable vector."""


class ModelError(FileSenseError):
    """A scoring model could not produce candidates or train."""
