"""Helpers shared by the docvec CLI commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from docvec.cli.errors import err_config, err_no_api_key, err_no_db, warn_no_rerank_key
from docvec.config import ConfigError, DocvecConfig, load_config
from docvec.logging_utils import setup_logging
from docvec.pipeline import open_db
from docvec.rag.llm_client import api_key_env, model_provider, validate_api_key


def load_cli_config(console: Console) -> DocvecConfig:
    """Load config and set up logging, or print an actionable error and exit 1."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    setup_logging(cfg.log_level)
    return cfg


def require_api_key(console: Console, model: str) -> None:
    """Exit 1 with a hint if the API key for *model* is not set."""
    try:
        validate_api_key(model)
    except EnvironmentError:
        console.print(err_no_api_key(model_provider(model), api_key_env(model)))
        raise typer.Exit(1)


def open_existing_db(console: Console, db: Path) -> sqlite3.Connection:
    """Open *db*, or exit 1 if it has not been created yet."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)
    return open_db(db)


def warn_missing_rerank_key(console: Console, model: str) -> None:
    """Print a warning if the rerank model's API key is not set."""
    try:
        validate_api_key(model)
    except EnvironmentError:
        console.print(warn_no_rerank_key(model_provider(model), api_key_env(model)))
