"""Fixtures for CLI tests: a project directory and fake LiteLLM endpoints."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import litellm
import pytest
import yaml

from docvec.db.models import Document, ExtractionStatus
from docvec.db.repository import Repository
from docvec.pipeline import open_db

_KEYWORDS = ("apple", "banana")


def keyword_vector(text: str) -> list[float]:
    """Toy embedding: one axis per keyword plus a small constant axis."""
    lower = text.lower()
    return [float(word in lower) for word in _KEYWORDS] + [0.1]


async def _embed(**kwargs):
    return SimpleNamespace(
        data=[
            {"index": i, "embedding": keyword_vector(text)}
            for i, text in enumerate(kwargs["input"])
        ]
    )


async def _rerank(**kwargs):
    # Prefers bananas, the opposite of most queries used in the tests.
    return SimpleNamespace(
        results=[
            {"index": i, "relevance_score": 0.9 if "banana" in doc.lower() else 0.1}
            for i, doc in enumerate(kwargs["documents"])
        ]
    )


@pytest.fixture
def project(tmp_path, monkeypatch):
    """CWD with a fast docvec.yaml and an API key in the environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("COLUMNS", "200")
    (tmp_path / "docvec.yaml").write_text(
        yaml.dump({"rate_limit": {"min_interval_ms": 0}, "retry": {"base_delay_s": 0}}),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def fake_embedding(monkeypatch):
    mock = AsyncMock(side_effect=_embed)
    monkeypatch.setattr(litellm, "aembedding", mock)
    return mock


@pytest.fixture
def fake_rerank(monkeypatch):
    mock = AsyncMock(side_effect=_rerank)
    monkeypatch.setattr(litellm, "arerank", mock)
    return mock


@pytest.fixture
def add_doc(project):
    """Insert a document with extracted text straight into .docvec.db."""

    def _add(doc_id, text, name=None, status=ExtractionStatus.COMPLETED):
        conn = open_db(project / ".docvec.db")
        try:
            document = Document(
                id=doc_id, name=name or f"{doc_id}.md", text=text, extraction_status=status
            )
            Repository(conn).add_document(document)
        finally:
            conn.close()

    return _add


@pytest.fixture
def read_repo(project):
    """Run *fn(repo)* against a fresh connection and return its result."""

    def _read(fn):
        conn = open_db(project / ".docvec.db")
        try:
            return fn(Repository(conn))
        finally:
            conn.close()

    return _read
