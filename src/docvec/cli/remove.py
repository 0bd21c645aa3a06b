"""docvec remove — document lifecycle management.

Removes a document and everything derived from it:
  - stored chunks and embeddings (best-effort)
  - the document record

Usage:
  docvec remove --doc 3f2a9c...
  docvec remove --doc 3f2a9c... --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docvec.cli._shared import load_cli_config, open_existing_db
from docvec.cli.errors import err_document_not_found
from docvec.pipeline import DEFAULT_DB, build_pipeline

console = Console()


def remove_cmd(
    doc: Annotated[
        str,
        typer.Option("--doc", "-d", help="Document id to remove."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a document and its vectors from the database."""
    cfg = load_cli_config(console)
    conn = open_existing_db(console, db)

    try:
        pipeline = build_pipeline(conn, cfg)
        document = pipeline.repo.get_document(doc)

        if document is None:
            console.print(err_document_not_found(doc))
            raise typer.Exit(0)

        chunk_count = pipeline.store.count(doc)
        console.print(f"\nRemove document: [bold]{document.name}[/] ({doc})")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        pipeline.orchestrator.remove(doc)
        pipeline.repo.delete_document(doc)

        console.print(f"\n[green]✓[/] Removed: {document.name}")
        console.print(f"  {chunk_count} chunks deleted")
    finally:
        conn.close()
