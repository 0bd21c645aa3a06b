"""Tests for the query path: embed → load → search → rerank."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from docvec.db.models import ChunkMetadata, DocumentChunk
from docvec.exceptions import RerankError, StorageError
from docvec.rag.llm_client import EmbeddingClient
from docvec.rag.rate_limiter import RateLimiter
from docvec.rag.reranker import Reranker, RerankScore
from docvec.rag.retriever import Retriever, RetrieverConfig


class MemoryStore:
    """Dict-backed VectorStore; ids listed in *broken* fail to load."""

    def __init__(self, docs: dict[str, list[DocumentChunk]], broken: set[str] | None = None):
        self.docs = docs
        self.broken = broken or set()

    def save(self, document_id, chunks):
        self.docs[document_id] = chunks

    def load(self, document_id):
        if document_id in self.broken:
            raise StorageError(f"cannot read {document_id}")
        return self.docs.get(document_id)

    def delete(self, document_id):
        self.docs.pop(document_id, None)

    def list_document_ids(self):
        return sorted(set(self.docs) | self.broken)


def _chunk(doc: str, i: int, embedding: list[float]) -> DocumentChunk:
    return DocumentChunk(
        id=DocumentChunk.make_id(doc, i),
        content=f"{doc} text {i}",
        metadata=ChunkMetadata(doc, f"{doc}.md", i),
        embedding=embedding,
    )


def _store(**kwargs) -> MemoryStore:
    return MemoryStore(
        {
            "a": [_chunk("a", 0, [1.0, 0.0]), _chunk("a", 1, [0.9, 0.1])],
            "b": [_chunk("b", 0, [0.8, 0.2]), _chunk("b", 1, [0.0, 1.0])],
        },
        **kwargs,
    )


def _embedder(vector: list[float] | None = None) -> EmbeddingClient:
    provider = AsyncMock(return_value=[vector or [1.0, 0.0]])
    return EmbeddingClient(RateLimiter(min_interval_ms=0), provider=provider)


# ------------------------------------------------------------------
# Vector-only path
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_without_rerank_returns_top_n():
    retriever = Retriever(_embedder(), _store())
    results = await retriever.search("q", config=RetrieverConfig(final_top_n=2, rerank=False))
    assert [r.chunk.id for r in results] == ["a_chunk_0", "a_chunk_1"]


@pytest.mark.asyncio
async def test_search_applies_threshold():
    retriever = Retriever(_embedder(), _store())
    results = await retriever.search(
        "q", config=RetrieverConfig(threshold=0.98, final_top_n=10, rerank=False)
    )
    assert [r.chunk.id for r in results] == ["a_chunk_0", "a_chunk_1"]


@pytest.mark.asyncio
async def test_search_restricted_to_document_ids():
    retriever = Retriever(_embedder(), _store())
    results = await retriever.search("q", ["b"], RetrieverConfig(rerank=False))
    assert {r.chunk.metadata.document_id for r in results} == {"b"}


@pytest.mark.asyncio
async def test_empty_query_returns_empty_without_calls():
    embedder = MagicMock()
    embedder.embed_query = AsyncMock()
    retriever = Retriever(embedder, _store())
    assert await retriever.search("   ") == []
    embedder.embed_query.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_candidates_returns_empty():
    retriever = Retriever(_embedder(), MemoryStore({}))
    assert await retriever.search("q") == []


@pytest.mark.asyncio
async def test_failed_document_load_is_skipped():
    retriever = Retriever(_embedder(), _store(broken={"c"}))
    results = await retriever.search("q", config=RetrieverConfig(final_top_n=10, rerank=False))
    assert {r.chunk.metadata.document_id for r in results} == {"a", "b"}


# ------------------------------------------------------------------
# Rerank path
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rerank_receives_initial_candidates_and_reorders():
    provider = AsyncMock(return_value=[RerankScore(2, 0.99), RerankScore(0, 0.5)])
    reranker = Reranker(RateLimiter(min_interval_ms=0), provider=provider)
    retriever = Retriever(_embedder(), _store(), reranker)

    results = await retriever.search(
        "q", config=RetrieverConfig(threshold=0.0, final_top_n=2, initial_candidates=3)
    )

    _, texts, _ = provider.await_args.args
    assert len(texts) == 3
    assert [r.chunk.id for r in results] == ["b_chunk_0", "a_chunk_0"]


@pytest.mark.asyncio
async def test_rerank_failure_matches_vector_only_results():
    store = _store()
    failing = Reranker(
        RateLimiter(min_interval_ms=0), provider=AsyncMock(side_effect=RerankError("down"))
    )
    config = RetrieverConfig(threshold=0.0, final_top_n=3)

    with_rerank = await Retriever(_embedder(), store, failing).search("q", config=config)
    vector_only = await Retriever(_embedder(), store).search(
        "q", config=RetrieverConfig(threshold=0.0, final_top_n=3, rerank=False)
    )
    assert [r.chunk.id for r in with_rerank] == [r.chunk.id for r in vector_only]


@pytest.mark.asyncio
async def test_rerank_disabled_in_config_skips_provider():
    provider = AsyncMock()
    reranker = Reranker(RateLimiter(min_interval_ms=0), provider=provider)
    retriever = Retriever(_embedder(), _store(), reranker)
    await retriever.search("q", config=RetrieverConfig(rerank=False))
    provider.assert_not_awaited()


@pytest.mark.asyncio
async def test_documents_from_another_embedding_model_are_skipped():
    store = MemoryStore(
        {
            "new": [_chunk("new", 0, [1.0, 0.0, 0.0])],
            "old": [_chunk("old", 0, [1.0, 0.0])],
        }
    )
    retriever = Retriever(_embedder([1.0, 0.0, 0.0]), store)
    results = await retriever.search("q", config=RetrieverConfig(threshold=0.0, rerank=False))
    assert [r.chunk.metadata.document_id for r in results] == ["new"]
