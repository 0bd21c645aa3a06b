"""docvec database layer."""

from docvec.db.connection import Database
from docvec.db.migrations import MIGRATIONS, run_migrations
from docvec.db.repository import Repository, TextSource
from docvec.db.schema import initialize
from docvec.db.vector_store import SqliteVectorStore, VectorStore

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "TextSource",
    "SqliteVectorStore",
    "VectorStore",
]
