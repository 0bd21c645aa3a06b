"""docvec CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from docvec.cli.add import add_cmd
from docvec.cli.remove import remove_cmd
from docvec.cli.reprocess import reprocess_cmd
from docvec.cli.search import search_cmd
from docvec.cli.status import status_cmd
from docvec.cli.vectorize import vectorize_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docvec")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docvec {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docvec",
    help=(
        "docvec — document vectorization and retrieval.\n\n"
        "  docvec add        Register extracted document text.\n"
        "  docvec vectorize  Chunk, embed and store every eligible document.\n"
        "  docvec search     Cosine search with optional rerank."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """docvec — document vectorization and retrieval."""


app.command("add")(add_cmd)
app.command("vectorize")(vectorize_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("reprocess")(reprocess_cmd)
app.command("remove")(remove_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docvec version."""
    typer.echo(f"docvec {_installed_version()}")


if __name__ == "__main__":
    app()
