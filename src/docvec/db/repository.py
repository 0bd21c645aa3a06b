"""Repository for upstream document records.

The ``documents`` table plays the role of the upstream text-extraction
collaborator: the extractor writes ``text`` and ``extraction_status``; the
vectorization pipeline only reads them, and writes back its own
``is_vectorized`` / ``vector_status`` / ``vector_error`` columns.
"""

from __future__ import annotations

import sqlite3
from typing import Protocol

from docvec.db.models import Document, ExtractionStatus, TaskState
from docvec.exceptions import DocumentNotFoundError


class TextSource(Protocol):
    """Read-only view of extracted document text used by the orchestrator."""

    def get_document(self, document_id: str) -> Document | None: ...

    def list_eligible_ids(self) -> list[str]: ...

    def mark_vectorized(self, document_id: str, vectorized: bool = True) -> None: ...

    def set_vector_state(
        self, document_id: str, state: TaskState, error: str | None = None
    ) -> None: ...


_DOC_COLUMNS = (
    "id, name, text, extraction_status, is_vectorized, vector_status, vector_error, created_at"
)


class Repository:
    """Data access layer for document records.

    Wraps an open sqlite3.Connection; the connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see docvec.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, document: Document) -> None:
        """Insert a new document record.

        Args:
            document: Document dataclass instance to persist.
        """
        self._conn.execute(
            """
            INSERT INTO documents (id, name, text, extraction_status, is_vectorized)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                document.id,
                document.name,
                document.text,
                ExtractionStatus(document.extraction_status).value,
                int(document.is_vectorized),
            ),
        )
        self._conn.commit()

    def get_document(self, document_id: str) -> Document | None:
        """Return a document by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_DOC_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_name(self, name: str) -> Document | None:
        """Return the most recently added document called *name*, or None."""
        row = self._conn.execute(
            f"SELECT {_DOC_COLUMNS} FROM documents WHERE name = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (name,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents in insertion order."""
        rows = self._conn.execute(
            f"SELECT {_DOC_COLUMNS} FROM documents ORDER BY rowid"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def get_text(self, document_id: str) -> str:
        """Return the extracted text of *document_id*.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        document = self.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document '{document_id}' not found.")
        return document.text

    def list_eligible_ids(self) -> list[str]:
        """Return ids whose extraction is COMPLETED and that still need vectors.

        FAILED documents are excluded; they re-enter only through an explicit
        reprocess.
        """
        rows = self._conn.execute(
            """
            SELECT id FROM documents
            WHERE extraction_status = ?
              AND is_vectorized = 0
              AND (vector_status IS NULL OR vector_status != ?)
            ORDER BY rowid
            """,
            (ExtractionStatus.COMPLETED.value, TaskState.FAILED.value),
        ).fetchall()
        return [r["id"] for r in rows]

    def set_extraction_status(self, document_id: str, status: ExtractionStatus) -> None:
        self._conn.execute(
            "UPDATE documents SET extraction_status = ? WHERE id = ?",
            (ExtractionStatus(status).value, document_id),
        )
        self._conn.commit()

    def set_vector_state(
        self, document_id: str, state: TaskState, error: str | None = None
    ) -> None:
        """Persist the vectorization state (and failure message) of a document."""
        self._conn.execute(
            "UPDATE documents SET vector_status = ?, vector_error = ? WHERE id = ?",
            (TaskState(state).value, error, document_id),
        )
        self._conn.commit()

    def mark_vectorized(self, document_id: str, vectorized: bool = True) -> None:
        self._conn.execute(
            "UPDATE documents SET is_vectorized = ? WHERE id = ?",
            (int(vectorized), document_id),
        )
        self._conn.commit()

    def delete_document(self, document_id: str) -> None:
        """Delete a document record. Does not touch its chunks."""
        self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        self._conn.commit()


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        name=row["name"],
        text=row["text"],
        extraction_status=ExtractionStatus(row["extraction_status"]),
        is_vectorized=bool(row["is_vectorized"]),
        vector_status=TaskState(row["vector_status"]) if row["vector_status"] else None,
        vector_error=row["vector_error"],
        created_at=row["created_at"],
    )
