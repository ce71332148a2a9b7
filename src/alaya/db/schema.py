# ABOUTME: Ordered migration steps that build the Alaya database schema.
# ABOUTME: Additive steps run plain DDL; rebuild steps swap in a shadow table.

from collections.abc import Collection
from dataclasses import dataclass

SCHEMA_VERSION_DDL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    name       TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);
"""


@dataclass(frozen=True)
class Migration:
    """An additive step: DDL that only creates tables or indexes.

    ``rerunnable`` steps are guarded by IF NOT EXISTS throughout and are
    replayed when an existing database is adopted.
    """

    version: int
    name: str
    sql: str
    rerunnable: bool = False

    def script(self) -> str:
        return self.sql.strip() + "\n"


@dataclass(frozen=True)
class TableRebuild:
    """A destructive step that replaces a table with a new shape.

    SQLite has no general ALTER/DROP COLUMN, so the step creates a shadow
    table, copies the listed columns across, drops the original and renames
    the shadow into place. Columns missing from ``copy_columns`` are dropped;
    columns only present in the new shape stay NULL for existing rows.
    Indexes die with the dropped table and are recreated afterwards.
    """

    version: int
    name: str
    table: str
    create_sql: str
    copy_columns: tuple[str, ...]
    indexes: tuple[str, ...] = ()

    @property
    def shadow(self) -> str:
        return f"{self.table}_new"

    def script(self, existing_columns: Collection[str] | None = None) -> str:
        """The swap as one SQL script.

        When ``existing_columns`` is given, only listed columns that the
        current table actually has are copied.
        """
        copied = [
            column
            for column in self.copy_columns
            if existing_columns is None or column in existing_columns
        ]
        columns = ", ".join(copied)
        statements = [
            # Leftover from an interrupted copy; the original is still intact.
            f"DROP TABLE IF EXISTS {self.shadow}",
            self.create_sql.strip().format(table=self.shadow),
            f"INSERT INTO {self.shadow} ({columns}) SELECT {columns} FROM {self.table}",
            f"DROP TABLE {self.table}",
            f"ALTER TABLE {self.shadow} RENAME TO {self.table}",
            *self.indexes,
        ]
        return ";\n".join(statements) + ";\n"


Step = Migration | TableRebuild

_BOOK_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)",
    "CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)",
    "CREATE INDEX IF NOT EXISTS idx_books_publication_year ON books(publication_year)",
)

MIGRATIONS: list[Step] = [
    Migration(
        version=1,
        name="create_users",
        rerunnable=True,
        sql="""
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    username      TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
""",
    ),
    Migration(
        version=2,
        name="create_sessions",
        rerunnable=True,
        sql="""
CREATE TABLE IF NOT EXISTS sessions (
    id         TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    token      TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);
""",
    ),
    Migration(
        version=3,
        name="create_books",
        sql="""
CREATE TABLE IF NOT EXISTS books (
    id               TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title            TEXT NOT NULL,
    author           TEXT NOT NULL,
    isbn             TEXT,
    publication_year INTEGER,
    notes            TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_books_user_id ON books(user_id);
CREATE INDEX IF NOT EXISTS idx_books_title ON books(title);
CREATE INDEX IF NOT EXISTS idx_books_author ON books(author);
CREATE INDEX IF NOT EXISTS idx_books_isbn ON books(isbn);
CREATE INDEX IF NOT EXISTS idx_books_publication_year ON books(publication_year);
""",
    ),
    TableRebuild(
        version=4,
        name="make_books_global",
        table="books",
        create_sql="""
CREATE TABLE {table} (
    id               TEXT PRIMARY KEY,
    title            TEXT NOT NULL,
    author           TEXT,
    isbn             TEXT,
    publication_year INTEGER,
    notes            TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
)
""",
        copy_columns=(
            "id", "title", "author", "isbn", "publication_year",
            "notes", "created_at", "updated_at",
        ),
        indexes=(
            *_BOOK_INDEXES,
            "CREATE INDEX IF NOT EXISTS idx_books_isbn ON books(isbn)",
        ),
    ),
    TableRebuild(
        version=5,
        name="add_filepath_to_books",
        table="books",
        create_sql="""
CREATE TABLE {table} (
    id               TEXT PRIMARY KEY,
    title            TEXT NOT NULL,
    author           TEXT,
    isbn             TEXT,
    publication_year INTEGER,
    filepath         TEXT UNIQUE,
    notes            TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
)
""",
        copy_columns=(
            "id", "title", "author", "isbn", "publication_year",
            "notes", "created_at", "updated_at",
        ),
        indexes=(
            *_BOOK_INDEXES,
            "CREATE INDEX IF NOT EXISTS idx_books_isbn ON books(isbn)",
            "CREATE INDEX IF NOT EXISTS idx_books_filepath ON books(filepath)",
        ),
    ),
    TableRebuild(
        version=6,
        name="drop_isbn_from_books",
        table="books",
        create_sql="""
CREATE TABLE {table} (
    id               TEXT PRIMARY KEY,
    title            TEXT NOT NULL,
    author           TEXT,
    publication_year INTEGER,
    filepath         TEXT UNIQUE,
    notes            TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
)
""",
        copy_columns=(
            "id", "title", "author", "publication_year", "filepath",
            "notes", "created_at", "updated_at",
        ),
        indexes=(
            *_BOOK_INDEXES,
            "CREATE INDEX IF NOT EXISTS idx_books_filepath ON books(filepath)",
        ),
    ),
]

LATEST_VERSION = MIGRATIONS[-1].version

# Final shape of the books table, in declaration order.
BOOK_COLUMNS = (
    "id",
    "title",
    "author",
    "publication_year",
    "filepath",
    "notes",
    "created_at",
    "updated_at",
)
