"""docvec search — cosine search over stored chunks with optional rerank."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from docvec.cli._shared import (
    load_cli_config,
    open_existing_db,
    require_api_key,
    warn_missing_rerank_key,
)
from docvec.cli.errors import err_embedding_failed
from docvec.exceptions import EmbeddingProviderError
from docvec.pipeline import DEFAULT_DB, build_pipeline, retriever_config
from docvec.rag.similarity import SearchResult

console = Console()

_SNIPPET_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    doc: Annotated[
        list[str] | None,
        typer.Option("--doc", "-d", help="Restrict to this document id (repeatable)."),
    ] = None,
    rerank: Annotated[
        bool | None,
        typer.Option("--rerank/--no-rerank", help="Rerank candidates (default from config)."),
    ] = None,
    top_n: Annotated[
        int | None,
        typer.Option("--top-n", "-n", min=1, help="Number of results."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", min=-1.0, max=1.0, help="Minimum cosine similarity."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db."),
    ] = DEFAULT_DB,
) -> None:
    """Find the chunks most similar to QUERY."""
    cfg = load_cli_config(console)
    conn = open_existing_db(console, db)

    try:
        require_api_key(console, cfg.embedding.model)

        options = retriever_config(cfg)
        if rerank is not None:
            options.rerank = rerank
        if top_n is not None:
            options.final_top_n = top_n
        if threshold is not None:
            options.threshold = threshold
        if options.rerank:
            warn_missing_rerank_key(console, cfg.rerank.model)

        pipeline = build_pipeline(conn, cfg)
        try:
            results = asyncio.run(pipeline.retriever.search(query, doc or None, options))
        except EmbeddingProviderError as exc:
            console.print(err_embedding_failed(str(exc)))
            raise typer.Exit(1)
    finally:
        conn.close()

    if not results:
        console.print("[yellow]No matching chunks.[/]")
        return
    console.print(_results_table(results))


def _results_table(results: list[SearchResult]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Rerank", justify="right")
    table.add_column("Document")
    table.add_column("Chunk", justify="right")
    table.add_column("Text")

    for rank, result in enumerate(results, start=1):
        meta = result.chunk.metadata
        snippet = " ".join(result.chunk.content.split())
        if len(snippet) > _SNIPPET_CHARS:
            snippet = snippet[: _SNIPPET_CHARS - 1] + "…"
        table.add_row(
            str(rank),
            f"{result.similarity:.3f}",
            _format_rerank(result.rerank_score),
            meta.document_name,
            str(meta.chunk_index),
            snippet,
        )
    return table


def _format_rerank(score: float | None) -> str:
    if score is None:
        return "—"
    if score == float("-inf"):
        return "n/a"
    return f"{score:.3f}"
