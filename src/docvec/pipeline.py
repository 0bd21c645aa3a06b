"""Wire configuration into the runtime components used by the CLI.

One RateLimiter is built per pipeline and handed to both the embedding
client and the reranker.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from docvec.config import DocvecConfig
from docvec.db.connection import Database
from docvec.db.repository import Repository
from docvec.db.schema import initialize
from docvec.db.vector_store import SqliteVectorStore
from docvec.ingest.chunker import TextChunker
from docvec.ingest.orchestrator import Orchestrator, ProcessingTask
from docvec.rag.llm_client import EmbeddingClient, EmbeddingSettings
from docvec.rag.rate_limiter import RateLimiter
from docvec.rag.reranker import Reranker, RerankSettings
from docvec.rag.retriever import Retriever, RetrieverConfig
from docvec.rag.retry import RetryPolicy

DEFAULT_DB = Path(".docvec.db")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the project database and run migrations."""
    db = Database(db_path)
    conn = db.connect()
    initialize(conn)
    return conn


@dataclass
class Pipeline:
    repo: Repository
    store: SqliteVectorStore
    limiter: RateLimiter
    embedder: EmbeddingClient
    reranker: Reranker
    orchestrator: Orchestrator
    retriever: Retriever


def build_pipeline(
    conn: sqlite3.Connection,
    cfg: DocvecConfig,
    on_state_change: Callable[[ProcessingTask], None] | None = None,
) -> Pipeline:
    """Build every component from *cfg* around an open connection."""
    repo = Repository(conn)
    store = SqliteVectorStore(conn)
    limiter = RateLimiter(
        max_concurrent_requests=cfg.rate_limit.max_concurrent_requests,
        min_interval_ms=cfg.rate_limit.min_interval_ms,
    )
    embedder = EmbeddingClient(
        limiter,
        settings=EmbeddingSettings(
            model=cfg.embedding.model,
            batch_size=cfg.embedding.batch_size,
            encoding_format=cfg.embedding.encoding_format,
            api_base=cfg.embedding.api_base,
            dimensions=cfg.embedding.dimensions,
        ),
        call_timeout_s=cfg.rate_limit.call_timeout_s,
    )
    reranker = Reranker(
        limiter,
        settings=RerankSettings(model=cfg.rerank.model, api_base=cfg.rerank.api_base),
        call_timeout_s=cfg.rate_limit.call_timeout_s,
    )
    orchestrator = Orchestrator(
        repo,
        store,
        embedder,
        chunker=TextChunker(cfg.chunking.max_chunk_size, cfg.chunking.overlap_size),
        retry=RetryPolicy(
            max_retries=cfg.retry.max_retries,
            base_delay_s=cfg.retry.base_delay_s,
            max_delay_s=cfg.retry.max_delay_s,
        ),
        on_state_change=on_state_change,
    )
    retriever = Retriever(embedder, store, reranker)
    return Pipeline(
        repo=repo,
        store=store,
        limiter=limiter,
        embedder=embedder,
        reranker=reranker,
        orchestrator=orchestrator,
        retriever=retriever,
    )


def retriever_config(cfg: DocvecConfig) -> RetrieverConfig:
    return RetrieverConfig(
        threshold=cfg.retrieval.threshold,
        final_top_n=cfg.retrieval.final_top_n,
        initial_candidates=cfg.retrieval.initial_candidates,
        rerank=cfg.rerank.enabled,
    )
