"""docvec rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docvec.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str, env_var: str | None = None) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = env_var or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".docvec.db") -> str:
    """No .docvec.db found."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  docvec add --source FILE"
    )


def err_config(message: str) -> str:
    """docvec.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix docvec.yaml (or ~/.docvec/config.yaml) and retry."
    )


def err_document_not_found(document_id: str) -> str:
    """Document id not in the database."""
    return (
        f"[yellow]Document not found:[/] '{document_id}'.\n"
        "  Run:  docvec status  to see all documents."
    )


def err_source_unreadable(path: str, reason: str) -> str:
    """A file passed to ``docvec add`` cannot be read as text."""
    return (
        f"[red]Error:[/] Cannot read '{path}': {reason}\n"
        "  Pass a UTF-8 plain-text or Markdown file."
    )


def err_cannot_reprocess(document_id: str, reason: str) -> str:
    """Reprocess requested for a document that is not FAILED."""
    return (
        f"[red]Error:[/] Cannot reprocess '{document_id}': {reason}\n"
        "  Only FAILED documents can be reprocessed. To rebuild a vectorized one:\n"
        f"    docvec remove --doc {document_id} --yes  then  docvec add --source FILE"
    )


def err_embedding_failed(reason: str) -> str:
    """The query could not be embedded."""
    return (
        f"[red]Error:[/] Query embedding failed: {reason}\n"
        "  Check the embedding model, api_base and API key, then retry."
    )


def warn_failed_documents(count: int) -> str:
    """Shown after ``docvec vectorize`` when some documents failed."""
    return (
        f"[yellow]⚠[/] {count} document(s) failed.\n"
        "  Inspect:  docvec status\n"
        "  Retry:    docvec reprocess --doc <ID>"
    )


def warn_no_rerank_key(provider: str, env_var: str) -> str:
    """Rerank requested but its provider key is missing; search still runs."""
    return (
        f"[yellow]⚠[/] No API key for rerank provider '{provider}'; "
        "results may fall back to similarity order.\n"
        f"  Set:  export {env_var}=...  or pass --no-rerank"
    )
