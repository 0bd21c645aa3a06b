"""docvec add — register extracted text documents in .docvec.db.

Stands in for the upstream text extractor: each file is read as UTF-8 text
and stored with extraction status COMPLETED, which makes it eligible for
``docvec vectorize``. A file whose name and text match an existing document
is skipped.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docvec.cli.errors import err_source_unreadable
from docvec.db.models import Document, ExtractionStatus
from docvec.db.repository import Repository
from docvec.pipeline import DEFAULT_DB, open_db

console = Console()


def add_cmd(
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="Text or Markdown file (repeatable)."),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option("--name", help="Document name (single --source only; defaults to file name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .docvec.db (created if missing)."),
    ] = DEFAULT_DB,
) -> None:
    """Add documents whose text is ready for vectorization."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source FILE.")
        raise typer.Exit(1)
    if name and len(sources) > 1:
        console.print("[red]Error:[/] --name can only be used with a single --source.")
        raise typer.Exit(1)

    conn = open_db(db)
    repo = Repository(conn)
    failures = 0
    try:
        for path in sources:
            if not _add_one(repo, path, name or path.name):
                failures += 1
    finally:
        conn.close()

    if failures:
        raise typer.Exit(1)


def _add_one(repo: Repository, path: Path, doc_name: str) -> bool:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(err_source_unreadable(str(path), str(exc)))
        return False

    existing = repo.get_document_by_name(doc_name)
    if existing is not None and existing.text == text:
        console.print(f"[dim]= Unchanged, skipped:[/] {doc_name} ({existing.id})")
        return True

    document = Document(
        id=uuid.uuid4().hex,
        name=doc_name,
        text=text,
        extraction_status=ExtractionStatus.COMPLETED,
    )
    repo.add_document(document)
    console.print(f"[green]✓[/] Added {doc_name}  [dim]id={document.id}  {len(text):,} chars[/]")
    return True
