"""Query path: embed query → load candidate chunks → cosine search → optional rerank.

Candidates are every stored chunk of the requested documents (or of every
vectorized document when none are given). All of them are scored in memory
on each call; there is no persistent ANN index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from docvec.db.models import DocumentChunk
from docvec.db.vector_store import VectorStore
from docvec.exceptions import StorageError
from docvec.rag.llm_client import EmbeddingClient
from docvec.rag.reranker import DEFAULT_FINAL_TOP_N, Reranker
from docvec.rag.similarity import DEFAULT_THRESHOLD, SearchResult, search

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_CANDIDATES = 50


@dataclass
class RetrieverConfig:
    """Configuration for one search call.

    Attributes:
        threshold: Minimum cosine similarity to keep a candidate.
        final_top_n: Number of results returned to the caller.
        initial_candidates: Candidates handed to the reranker when enabled.
        rerank: Whether to rerank the vector-search candidates.
    """

    threshold: float = DEFAULT_THRESHOLD
    final_top_n: int = DEFAULT_FINAL_TOP_N
    initial_candidates: int = DEFAULT_INITIAL_CANDIDATES
    rerank: bool = True


class Retriever:
    """Glue between EmbeddingClient, VectorStore, SimilaritySearch and Reranker.

    Args:
        embedder: Client used to embed the query.
        store: Source of stored chunk records.
        reranker: Optional reranker; when None, results are vector-ranked only.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        reranker: Reranker | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._reranker = reranker

    async def search(
        self,
        query: str,
        document_ids: list[str] | None = None,
        config: RetrieverConfig | None = None,
    ) -> list[SearchResult]:
        """Return the best chunks for *query*, best first.

        Raises:
            EmbeddingProviderError: If the query cannot be embedded.
        """
        config = config or RetrieverConfig()
        if not query.strip():
            return []

        candidates = self.load_candidates(document_ids)
        if not candidates:
            logger.info("No vectorized chunks to search")
            return []

        query_embedding = await self._embedder.embed_query(query)

        use_rerank = config.rerank and self._reranker is not None
        limit = config.initial_candidates if use_rerank else config.final_top_n
        results = search(query_embedding, candidates, config.threshold, limit=limit)
        logger.debug(
            "Vector search kept %d of %d candidates (threshold=%.2f)",
            len(results),
            len(candidates),
            config.threshold,
        )

        if use_rerank and results:
            return await self._reranker.rerank(query, results, config.final_top_n)
        return results[: config.final_top_n]

    def load_candidates(self, document_ids: list[str] | None = None) -> list[DocumentChunk]:
        """Load stored chunks; documents that fail to load are logged and skipped."""
        ids = document_ids if document_ids is not None else self._store.list_document_ids()
        chunks: list[DocumentChunk] = []
        for document_id in ids:
            try:
                loaded = self._store.load(document_id)
            except StorageError as exc:
                logger.warning("Skipping document %s: %s", document_id, exc)
                continue
            if loaded:
                chunks.extend(loaded)
        return chunks
