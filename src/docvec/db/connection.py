"""SQLite connection layer with the sqlite-vec extension loaded."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

_BUSY_TIMEOUT_MS = 5_000


class Database:
    """Project database file; every connection gets the sqlite-vec SQL functions.

    Usable directly (``Database(path).connect()``, caller closes) or as a
    context manager that closes the connection on exit.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection with Row access, WAL journaling and sqlite-vec loaded."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)
        conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def vec_version(conn: sqlite3.Connection) -> str:
    """Return the sqlite-vec version loaded into *conn*."""
    return conn.execute("SELECT vec_version()").fetchone()[0]
