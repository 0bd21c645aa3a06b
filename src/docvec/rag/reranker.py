"""Cross-encoder rerank with graceful fallback to vector ranking.

A rerank failure never reaches the caller: the vector-ranked top N is
returned instead and the failure is logged.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

import litellm

from docvec.exceptions import RerankError
from docvec.rag.llm_client import DEFAULT_CALL_TIMEOUT_S
from docvec.rag.rate_limiter import RateLimiter
from docvec.rag.similarity import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_RERANK_MODEL = "cohere/BAAI/bge-reranker-v2-m3"
DEFAULT_FINAL_TOP_N = 5


@dataclass
class RerankScore:
    index: int
    score: float


@dataclass
class RerankSettings:
    """Rerank parameters (docvec.yaml: rerank:)."""

    model: str = DEFAULT_RERANK_MODEL
    api_base: str | None = None
    api_key: str | None = None


RerankProvider = Callable[[str, list[str], RerankSettings], Awaitable[list[RerankScore]]]


def _field(item: Any, name: str) -> Any:
    return item[name] if isinstance(item, dict) else getattr(item, name)


async def litellm_rerank_provider(
    query: str, documents: list[str], settings: RerankSettings
) -> list[RerankScore]:
    """Call ``litellm.arerank()`` and return the (possibly partial) scores.

    Raises:
        RerankError: On any provider failure or malformed response.
    """
    kwargs: dict[str, Any] = {
        "model": settings.model,
        "query": query,
        "documents": documents,
    }
    if settings.api_base:
        kwargs["api_base"] = settings.api_base
    if settings.api_key:
        kwargs["api_key"] = settings.api_key

    try:
        response = await litellm.arerank(**kwargs)
        return [
            RerankScore(index=int(_field(r, "index")), score=float(_field(r, "relevance_score")))
            for r in (response.results or [])
        ]
    except Exception as exc:
        raise RerankError(f"Rerank request to {settings.model} failed: {exc}") from exc


def fuse_scores(
    candidates: list[SearchResult], scores: list[RerankScore], final_top_n: int
) -> list[SearchResult]:
    """Attach rerank scores to *candidates* by index and keep the best *final_top_n*.

    Candidates the provider did not score get ``-inf`` and sort last, keeping
    their vector order among themselves. Out-of-range indices are ignored.
    """
    by_index: dict[int, float] = {}
    for s in scores:
        if 0 <= s.index < len(candidates):
            by_index[s.index] = s.score
        else:
            logger.debug("Ignoring rerank score for out-of-range index %d", s.index)

    fused = [
        replace(candidate, rerank_score=by_index.get(i, -math.inf))
        for i, candidate in enumerate(candidates)
    ]
    fused.sort(key=lambda r: r.rerank_score, reverse=True)
    return fused[:final_top_n]


class Reranker:
    """Re-score vector-search candidates with a cross-encoder provider.

    Args:
        limiter: Shared RateLimiter; every rerank call holds one token.
        provider: Coroutine performing one rerank call.
        settings: Model and endpoint.
        call_timeout_s: Bound on each acquire + call + release cycle.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        provider: RerankProvider = litellm_rerank_provider,
        settings: RerankSettings | None = None,
        call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S,
    ) -> None:
        self._limiter = limiter
        self._provider = provider
        self.settings = settings or RerankSettings()
        self.call_timeout_s = call_timeout_s

    async def score(self, query: str, texts: list[str]) -> list[RerankScore]:
        """Return raw provider scores for *texts* (not necessarily sorted).

        Raises:
            RerankError: On provider failure or timeout.
        """

        async def _cycle() -> list[RerankScore]:
            async with self._limiter.slot():
                return await self._provider(query, texts, self.settings)

        try:
            return await asyncio.wait_for(_cycle(), timeout=self.call_timeout_s)
        except asyncio.TimeoutError as exc:
            raise RerankError(
                f"Rerank call timed out after {self.call_timeout_s:g}s"
            ) from exc

    async def rerank(
        self,
        query: str,
        candidates: list[SearchResult],
        final_top_n: int = DEFAULT_FINAL_TOP_N,
    ) -> list[SearchResult]:
        """Rerank *candidates* (already in vector order) and keep *final_top_n*.

        On any failure the vector-ranked top *final_top_n* is returned.
        """
        if not candidates:
            return []
        try:
            scores = await self.score(query, [c.chunk.content for c in candidates])
        except Exception as exc:
            logger.warning(
                "Rerank failed, falling back to vector ranking: %s", exc
            )
            return candidates[:final_top_n]
        return fuse_scores(candidates, scores, final_top_n)
