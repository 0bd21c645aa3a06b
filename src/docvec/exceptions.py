"""Error taxonomy for the vectorization and retrieval pipeline.

Component-level code (chunker, embedding client, similarity search, vector
store) raises these; only the orchestrator and the reranker decide whether to
retry, skip, or degrade.
"""

from __future__ import annotations


class DocvecError(Exception):
    """Base class for all pipeline errors."""


class ChunkingError(DocvecError):
    """Raised when a document's text yields zero chunks."""


class EmbeddingProviderError(DocvecError):
    """Raised when the embedding provider call fails.

    Attributes:
        status_code: HTTP status returned by the provider, or None for
            network errors and timeouts.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Only rate-limit responses (HTTP 429) are worth retrying."""
        return self.status_code == 429


class StorageError(DocvecError):
    """Raised when chunk+vector records cannot be saved or loaded."""


class RerankError(DocvecError):
    """Raised by rerank providers; always recovered by the Reranker."""


class DocumentNotFoundError(DocvecError):
    """Raised when a document id is not known to the upstream text source."""


class InvalidTransitionError(DocvecError):
    """Raised when a processing task is asked to make an illegal state change."""
