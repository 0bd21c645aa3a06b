"""Chunk + embedding persistence keyed by document id.

Embeddings are stored as float32 BLOBs produced by
``sqlite_vec.serialize_float32()``; sqlite-vec's ``vec_length()`` reports the
stored dimensionality. Search happens in memory (see docvec.rag.similarity),
so no vec0 index table is kept.
"""

from __future__ import annotations

import logging
import sqlite3
import struct
from typing import Protocol

import sqlite_vec

from docvec.db.models import ChunkMetadata, DocumentChunk
from docvec.exceptions import StorageError

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Durable storage of chunk+embedding records keyed by document id."""

    def save(self, document_id: str, chunks: list[DocumentChunk]) -> None: ...

    def load(self, document_id: str) -> list[DocumentChunk] | None: ...

    def delete(self, document_id: str) -> None: ...

    def list_document_ids(self) -> list[str]: ...


class SqliteVectorStore:
    """VectorStore backed by the ``chunks`` table of the project database.

    Args:
        conn: Open connection with sqlite-vec loaded and schema initialised.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save(self, document_id: str, chunks: list[DocumentChunk]) -> None:
        """Replace all stored chunks of *document_id* with *chunks*.

        Idempotent overwrite: the delete and the inserts run in one
        transaction, so a failed save leaves the previous records intact.

        Raises:
            StorageError: If a chunk has no embedding, belongs to another
                document, has a different dimensionality than its siblings,
                or the database write fails.
        """
        rows = _to_rows(document_id, chunks)
        try:
            with self._conn:
                self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
                self._conn.executemany(
                    """
                    INSERT INTO chunks (id, document_id, document_name, chunk_index, content, embedding)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to save {len(chunks)} chunks for document '{document_id}': {exc}"
            ) from exc
        logger.info("Saved %d chunks for document %s", len(rows), document_id)

    def load(self, document_id: str) -> list[DocumentChunk] | None:
        """Return the chunks of *document_id* ordered by index, or None if absent.

        Raises:
            StorageError: If the records cannot be read.
        """
        try:
            rows = self._conn.execute(
                """
                SELECT id, document_id, document_name, chunk_index, content, embedding
                FROM chunks WHERE document_id = ? ORDER BY chunk_index
                """,
                (document_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to load chunks for document '{document_id}': {exc}"
            ) from exc
        if not rows:
            return None
        return [_row_to_chunk(r) for r in rows]

    def delete(self, document_id: str) -> None:
        """Delete all chunks of *document_id*. Best-effort: errors are logged only."""
        try:
            with self._conn:
                cur = self._conn.execute(
                    "DELETE FROM chunks WHERE document_id = ?", (document_id,)
                )
        except sqlite3.Error as exc:
            logger.warning("Failed to delete vectors for document %s: %s", document_id, exc)
            return
        logger.info("Deleted %d chunks for document %s", cur.rowcount, document_id)

    def list_document_ids(self) -> list[str]:
        """Return the ids of all documents that have stored chunks."""
        rows = self._conn.execute(
            "SELECT DISTINCT document_id FROM chunks ORDER BY document_id"
        ).fetchall()
        return [r["document_id"] for r in rows]

    def count(self, document_id: str) -> int:
        """Return the number of stored chunks for *document_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def dimensions(self, document_id: str) -> int | None:
        """Return the embedding dimensionality stored for *document_id*, if any."""
        row = self._conn.execute(
            "SELECT vec_length(embedding) FROM chunks WHERE document_id = ? LIMIT 1",
            (document_id,),
        ).fetchone()
        return row[0] if row else None


# ------------------------------------------------------------------
# Row helpers
# ------------------------------------------------------------------


def _to_rows(document_id: str, chunks: list[DocumentChunk]) -> list[tuple]:
    rows: list[tuple] = []
    dims: int | None = None
    for chunk in chunks:
        if chunk.metadata.document_id != document_id:
            raise StorageError(
                f"Chunk '{chunk.id}' belongs to document '{chunk.metadata.document_id}', "
                f"not '{document_id}'."
            )
        if chunk.embedding is None:
            raise StorageError(f"Chunk '{chunk.id}' has no embedding.")
        if dims is None:
            dims = len(chunk.embedding)
        elif len(chunk.embedding) != dims:
            raise StorageError(
                f"Chunk '{chunk.id}' has {len(chunk.embedding)} dimensions; "
                f"expected {dims} like the rest of document '{document_id}'."
            )
        rows.append(
            (
                chunk.id,
                document_id,
                chunk.metadata.document_name,
                chunk.metadata.chunk_index,
                chunk.content,
                sqlite_vec.serialize_float32(chunk.embedding),
            )
        )
    return rows


def _row_to_chunk(row: sqlite3.Row) -> DocumentChunk:
    blob = row["embedding"]
    embedding = list(struct.unpack(f"{len(blob) // 4}f", blob)) if blob is not None else None
    return DocumentChunk(
        id=row["id"],
        content=row["content"],
        metadata=ChunkMetadata(
            document_id=row["document_id"],
            document_name=row["document_name"],
            chunk_index=row["chunk_index"],
        ),
        embedding=embedding,
    )
