"""docvec reprocess — reset a FAILED document and vectorize it again.

Usage:
  docvec reprocess --doc 3f2a9c...
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docvec.cli._shared import load_cli_config, open_existing_db, require_api_key
from docvec.cli.errors import err_cannot_reprocess, err_document_not_found
from docvec.db.models import TaskState
from docvec.exceptions import DocumentNotFoundError, InvalidTransitionError
from docvec.pipeline import DEFAULT_DB, build_pipeline

console = Console()


def reprocess_cmd(
    doc: Annotated[
        str,
        typer.Option("--doc", "-d", help="Document id to reprocess."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db."),
    ] = DEFAULT_DB,
) -> None:
    """Reprocess a document whose vectorization failed."""
    cfg = load_cli_config(console)
    conn = open_existing_db(console, db)

    try:
        require_api_key(console, cfg.embedding.model)
        pipeline = build_pipeline(conn, cfg)
        orchestrator = pipeline.orchestrator

        try:
            queued = orchestrator.reprocess(doc)
        except DocumentNotFoundError:
            console.print(err_document_not_found(doc))
            raise typer.Exit(1)
        except InvalidTransitionError as exc:
            console.print(err_cannot_reprocess(doc, str(exc)))
            raise typer.Exit(1)

        if not queued:
            console.print(f"[yellow]Document '{doc}' is not ready for vectorization.[/]")
            raise typer.Exit(1)

        with console.status(f"Reprocessing {doc}…"):
            asyncio.run(orchestrator.drain())

        task = orchestrator.task(doc)
        if task is not None and task.state == TaskState.COMPLETED:
            chunks = pipeline.store.count(doc)
            console.print(f"[green]✓[/] Reprocessed {doc}: {chunks} chunks stored")
        else:
            message = task.message if task is not None else "unknown error"
            console.print(f"[red]✗[/] Reprocessing {doc} failed: {message}")
            raise typer.Exit(1)
    finally:
        conn.close()
