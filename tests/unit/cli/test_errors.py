"""Tests for docvec rich error messages."""

from __future__ import annotations

import pytest

from docvec.cli.errors import (
    err_cannot_reprocess,
    err_config,
    err_document_not_found,
    err_embedding_failed,
    err_no_api_key,
    err_no_db,
    err_source_unreadable,
    warn_failed_documents,
)


def _has_action(msg: str) -> bool:
    """Every error must contain an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "export ", "docvec ", "fix ", "pass ", "check "])


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("openai"),
        err_no_db(),
        err_config("chunking.max_chunk_size must be >= 1"),
        err_document_not_found("abc"),
        err_source_unreadable("x.pdf", "invalid start byte"),
        err_cannot_reprocess("abc", "already COMPLETED"),
        err_embedding_failed("timeout"),
        warn_failed_documents(2),
    ],
)
def test_every_message_has_an_action(msg: str) -> None:
    assert _has_action(msg)


def test_no_api_key_default_env_var() -> None:
    assert "export OPENAI_API_KEY=" in err_no_api_key("openai")


def test_no_api_key_explicit_env_var() -> None:
    msg = err_no_api_key("together_ai", "TOGETHERAI_API_KEY")
    assert "'together_ai'" in msg
    assert "TOGETHERAI_API_KEY" in msg


def test_no_db_mentions_path() -> None:
    assert "custom.db" in err_no_db("custom.db")


def test_cannot_reprocess_suggests_remove() -> None:
    assert "docvec remove --doc abc" in err_cannot_reprocess("abc", "already COMPLETED")


def test_warn_failed_documents_count() -> None:
    assert "3 document(s) failed" in warn_failed_documents(3)
