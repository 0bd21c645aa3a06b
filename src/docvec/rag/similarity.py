"""In-memory cosine similarity search over candidate chunks."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from docvec.db.models import DocumentChunk

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5


@dataclass
class SearchResult:
    chunk: DocumentChunk
    similarity: float
    rerank_score: float | None = None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``, or 0.0 if either vector is all zeros.

    The dot product and both squared norms are accumulated in the same order,
    so ``cosine_similarity(v, v) == 1.0`` and ``cosine_similarity(v, -v) == -1.0``
    exactly, and the function is symmetric.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    value = dot / math.sqrt(norm_a * norm_b)
    return max(-1.0, min(1.0, value))


def search(
    query_embedding: Sequence[float],
    candidates: Iterable[DocumentChunk],
    threshold: float = DEFAULT_THRESHOLD,
    limit: int | None = None,
) -> list[SearchResult]:
    """Score *candidates* against *query_embedding* and rank them.

    Candidates without an embedding, or whose dimensionality differs from
    the query's (vectors from another embedding model), are skipped.
    Results below *threshold* are dropped. The rest are sorted by similarity
    descending; ties keep candidate order.

    Args:
        query_embedding: Query vector.
        candidates: Chunks to score.
        threshold: Minimum similarity to keep.
        limit: Keep at most this many results (None keeps all).
    """
    results: list[SearchResult] = []
    mismatched: set[str] = set()
    for chunk in candidates:
        if chunk.embedding is None:
            continue
        if len(chunk.embedding) != len(query_embedding):
            document_id = chunk.metadata.document_id
            if document_id not in mismatched:
                mismatched.add(document_id)
                logger.warning(
                    "Skipping document %s: embedding has %d dimensions, query has %d",
                    document_id,
                    len(chunk.embedding),
                    len(query_embedding),
                )
            continue
        similarity = cosine_similarity(query_embedding, chunk.embedding)
        if similarity >= threshold:
            results.append(SearchResult(chunk=chunk, similarity=similarity))

    results.sort(key=lambda r: r.similarity, reverse=True)
    return results if limit is None else results[:limit]
