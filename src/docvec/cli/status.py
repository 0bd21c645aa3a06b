"""docvec status command.

Shows the database overview and one row per document with its extraction
state, vectorization state, stored chunk count and last error.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docvec.config import ConfigError, DocvecConfig, load_config
from docvec.db.connection import vec_version
from docvec.db.models import Document, TaskState
from docvec.db.repository import Repository
from docvec.db.schema import schema_version
from docvec.db.vector_store import SqliteVectorStore
from docvec.pipeline import DEFAULT_DB, open_db

console = Console()

_STATE_STYLE = {
    TaskState.COMPLETED: "green",
    TaskState.FAILED: "red",
    TaskState.PROCESSING: "cyan",
    TaskState.QUEUED: "cyan",
    TaskState.PENDING: "yellow",
}


def status_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db."),
    ] = DEFAULT_DB,
) -> None:
    """Show documents and their vectorization state."""
    # status still works with a broken docvec.yaml
    try:
        cfg = load_config()
    except ConfigError:
        cfg = DocvecConfig()

    if not db.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  docvec add --source FILE",
                title="[bold]docvec[/]",
                expand=False,
            )
        )
        return

    conn = open_db(db)
    try:
        repo = Repository(conn)
        store = SqliteVectorStore(conn)
        documents = repo.list_documents()
        counts = {d.id: store.count(d.id) for d in documents}

        size_mb = db.stat().st_size / (1024 * 1024)
        vectorized = sum(1 for d in documents if d.is_vectorized)
        failed = sum(1 for d in documents if d.vector_status == TaskState.FAILED)
        lines = [
            f"Database:   {db} ({size_mb:.1f} MB, schema v{schema_version(conn)}, "
            f"sqlite-vec {vec_version(conn)})",
            f"Embedding:  {cfg.embedding.model}",
            f"Rerank:     {cfg.rerank.model if cfg.rerank.enabled else 'disabled'}",
            f"Documents:  [bold]{len(documents)}[/]  |  "
            f"Vectorized: [bold]{vectorized}[/]  |  "
            f"Failed: [bold]{failed}[/]  |  "
            f"Chunks: [bold]{sum(counts.values()):,}[/]",
        ]
        console.print(Panel("\n".join(lines), title="[bold]docvec[/]", expand=False))

        if documents:
            console.print(_documents_table(documents, counts))
    finally:
        conn.close()


def _documents_table(documents: list[Document], counts: dict[str, int]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Extraction")
    table.add_column("Vectors")
    table.add_column("Chunks", justify="right")
    table.add_column("Error")

    for d in documents:
        if d.is_vectorized:
            state = TaskState.COMPLETED
        else:
            state = d.vector_status or TaskState.PENDING
        style = _STATE_STYLE[state]
        table.add_row(
            d.id,
            d.name,
            d.extraction_status.value,
            f"[{style}]{state.value}[/]",
            str(counts.get(d.id, 0)),
            d.vector_error or "",
        )
    return table
