"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from docvec.db.connection import Database
from docvec.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docvec.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture(autouse=True)
def _isolate_global_config(tmp_path, monkeypatch):
    """Point the global config at an empty location so ~/.docvec never leaks in."""
    monkeypatch.setattr(
        "docvec.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml"
    )
    for var in ("DOCVEC_EMBEDDING_MODEL", "DOCVEC_RERANK_MODEL", "DOCVEC_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
