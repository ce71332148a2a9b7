# ABOUTME: SQLite connection management for the Alaya book database.
# ABOUTME: Opens or creates the database file and brings its schema up to date.

import sqlite3
from pathlib import Path

from alaya.db.migrations import apply_migrations

DEFAULT_DB_PATH = Path("alaya.db")


def connect(path: Path) -> sqlite3.Connection:
    """Open a configured connection without touching the schema."""
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        # Rollback journal keeps the library a single file (no -wal/-shm).
        conn.execute("PRAGMA journal_mode=DELETE")
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.DatabaseError:
        conn.close()
        raise
    return conn


def open_database(path: Path | None = None, *, migrate: bool = True) -> sqlite3.Connection:
    """Open or create the Alaya database.

    Creates the database file and parent directories if they don't exist,
    then applies any outstanding migrations. Uses sqlite3.Row for
    dict-like column access.

    Args:
        path: Path to the database file. Defaults to ./alaya.db.
        migrate: Apply pending migrations before returning.

    Returns:
        A configured sqlite3.Connection.

    Raises:
        MigrationError: If a pending migration fails. The connection is
            closed before the error propagates.
        sqlite3.DatabaseError: If the file is not a SQLite database.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    if migrate:
        try:
            apply_migrations(conn)
        except Exception:
            conn.close()
            raise
    return conn
