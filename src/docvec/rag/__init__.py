"""docvec embedding, search and rerank components."""

from docvec.rag.llm_client import EmbeddingClient, EmbeddingSettings
from docvec.rag.rate_limiter import RateLimiter
from docvec.rag.reranker import Reranker, RerankScore, RerankSettings
from docvec.rag.retriever import Retriever, RetrieverConfig
from docvec.rag.retry import RetryPolicy
from docvec.rag.similarity import SearchResult, cosine_similarity, search

__all__ = [
    "EmbeddingClient",
    "EmbeddingSettings",
    "RateLimiter",
    "Reranker",
    "RerankScore",
    "RerankSettings",
    "Retriever",
    "RetrieverConfig",
    "RetryPolicy",
    "SearchResult",
    "cosine_similarity",
    "search",
]
