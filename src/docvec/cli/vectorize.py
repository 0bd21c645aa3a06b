"""docvec vectorize — chunk, embed and store every eligible document.

Documents are processed one at a time in FIFO order; all provider calls go
through one rate limiter. A failed document is marked FAILED with its error
message and does not stop the rest of the queue.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docvec.cli._shared import load_cli_config, open_existing_db, require_api_key
from docvec.cli.errors import err_document_not_found, warn_failed_documents
from docvec.db.models import TaskState
from docvec.exceptions import DocumentNotFoundError
from docvec.ingest.orchestrator import ProcessingTask
from docvec.pipeline import DEFAULT_DB, build_pipeline

console = Console()


def vectorize_cmd(
    doc: Annotated[
        list[str] | None,
        typer.Option("--doc", "-d", help="Only vectorize this document id (repeatable)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db."),
    ] = DEFAULT_DB,
) -> None:
    """Vectorize all documents whose text is ready and that have no vectors yet."""
    cfg = load_cli_config(console)
    conn = open_existing_db(console, db)

    try:
        require_api_key(console, cfg.embedding.model)

        bar = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        )
        bar_task: list = []
        failed: list[ProcessingTask] = []

        def _on_state_change(task: ProcessingTask) -> None:
            if task.state in (TaskState.COMPLETED, TaskState.FAILED) and bar_task:
                bar.advance(bar_task[0])
            if task.state == TaskState.FAILED:
                failed.append(task)

        pipeline = build_pipeline(conn, cfg, on_state_change=_on_state_change)
        orchestrator = pipeline.orchestrator

        if doc:
            queued = 0
            for document_id in doc:
                try:
                    queued += orchestrator.submit(document_id)
                except DocumentNotFoundError:
                    console.print(err_document_not_found(document_id))
                    raise typer.Exit(1)
        else:
            queued = orchestrator.scan()

        if queued == 0:
            console.print("[dim]Nothing to vectorize.[/]")
            return

        with bar:
            bar_task.append(bar.add_task("Vectorizing", total=queued))
            progress = asyncio.run(orchestrator.drain())

        console.print(
            f"\n[green]✓[/] Processed: [bold]{progress.processed}[/]  |  "
            f"Failed: [bold]{progress.failed}[/]  |  Total: [bold]{progress.total}[/]"
        )
        for task in failed:
            document = pipeline.repo.get_document(task.document_id)
            label = document.name if document else task.document_id
            console.print(f"  [red]✗[/] {label}: {task.message}")
        if failed:
            console.print(f"\n{warn_failed_documents(len(failed))}")
            raise typer.Exit(1)
    finally:
        conn.close()
