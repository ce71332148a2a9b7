# ABOUTME: CRUD operations for the Alaya book catalog.
# ABOUTME: Create, look up, update, list, and delete books in the SQLite database.

import sqlite3
import uuid

from alaya.db.mapping import Book, next_timestamp, row_to_book, utc_now

_UPDATABLE_FIELDS = frozenset({"title", "author", "publication_year", "filepath", "notes"})


class ConstraintViolationError(Exception):
    """Raised when a write breaks a uniqueness constraint."""


class DuplicateFilepathError(ConstraintViolationError):
    """Raised when a book's filepath is already used by another book."""


class BookNotFoundError(LookupError):
    """Raised when an update or delete targets a book that does not exist."""


def _clean_title(title: str) -> str:
    cleaned = title.strip() if title else ""
    if not cleaned:
        raise ValueError("Book title must not be empty")
    return cleaned


class BookCatalog:
    """Wraps a sqlite3 connection and provides typed CRUD for the books table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def close(self) -> None:
        self._conn.close()

    def _execute_write(self, sql: str, params: tuple, filepath: str | None) -> sqlite3.Cursor:
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            if "books.filepath" in str(exc):
                raise DuplicateFilepathError(
                    f"A book with filepath {filepath!r} already exists"
                ) from exc
            raise ConstraintViolationError(str(exc)) from exc
        return cursor

    def add_book(
        self,
        title: str,
        author: str | None = None,
        publication_year: int | None = None,
        filepath: str | None = None,
        notes: str | None = None,
    ) -> Book:
        """Add a book to the catalog.

        Generates a UUID and stamps created_at and updated_at with the
        same instant.

        Returns:
            The stored Book.

        Raises:
            ValueError: If the title is empty.
            DuplicateFilepathError: If another book already uses filepath.
        """
        book = Book(
            id=str(uuid.uuid4()),
            title=_clean_title(title),
            author=author,
            publication_year=publication_year,
            filepath=filepath,
            notes=notes,
            created_at=utc_now(),
            updated_at="",
        )
        book.updated_at = book.created_at

        self._execute_write(
            "INSERT INTO books (id, title, author, publication_year, filepath, notes, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                book.id,
                book.title,
                book.author,
                book.publication_year,
                book.filepath,
                book.notes,
                book.created_at,
                book.updated_at,
            ),
            filepath,
        )
        return book

    def get_by_id(self, book_id: str) -> Book | None:
        """Retrieve a book by its ID."""
        cursor = self._conn.execute("SELECT * FROM books WHERE id = ?", (book_id,))
        row = cursor.fetchone()
        return row_to_book(row) if row else None

    def get_by_filepath(self, filepath: str) -> Book | None:
        cursor = self._conn.execute("SELECT * FROM books WHERE filepath = ?", (filepath,))
        row = cursor.fetchone()
        return row_to_book(row) if row else None

    def find_by_title(self, title: str) -> list[Book]:
        """Return books whose title equals ``title`` exactly (case-sensitive).

        Exact equality is what idx_books_title can serve.
        """
        cursor = self._conn.execute(
            "SELECT * FROM books WHERE title = ? ORDER BY created_at",
            (title.strip(),),
        )
        return [row_to_book(row) for row in cursor.fetchall()]

    def list_books(
        self,
        *,
        author: str | None = None,
        title: str | None = None,
        year: int | None = None,
        with_notes: bool = False,
    ) -> list[Book]:
        """Return books, newest first, optionally filtered.

        Author, title, and year filters are exact matches on their indexed
        columns. ``with_notes`` keeps only books that have non-blank notes.
        """
        clauses: list[str] = []
        params: list[str | int] = []
        if author is not None:
            clauses.append("author = ?")
            params.append(author)
        if title is not None:
            clauses.append("title = ?")
            params.append(title)
        if year is not None:
            clauses.append("publication_year = ?")
            params.append(year)
        if with_notes:
            clauses.append("notes IS NOT NULL AND TRIM(notes) != ''")

        sql = "SELECT * FROM books"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"

        cursor = self._conn.execute(sql, params)
        return [row_to_book(row) for row in cursor.fetchall()]

    def count_books(self) -> int:
        cursor = self._conn.execute("SELECT COUNT(*) FROM books")
        return cursor.fetchone()[0]

    def update_book(self, book_id: str, **fields: str | int | None) -> Book:
        """Update one or more fields on a book.

        Accepts title, author, publication_year, filepath, and notes.
        updated_at always moves strictly forward.

        Returns:
            The book as stored after the update.

        Raises:
            ValueError: On unknown field names or an empty title.
            BookNotFoundError: If the book_id does not exist.
            DuplicateFilepathError: If the new filepath is taken.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update unknown field(s): {', '.join(sorted(unknown))}")
        if "title" in fields:
            fields["title"] = _clean_title(str(fields["title"] or ""))

        existing = self.get_by_id(book_id)
        if existing is None:
            raise BookNotFoundError(f"Book with id {book_id} not found")

        updated_at = next_timestamp(existing.updated_at)
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        set_clause = f"{set_clause}, updated_at = ?" if set_clause else "updated_at = ?"
        values = (*fields.values(), updated_at, book_id)

        cursor = self._execute_write(
            f"UPDATE books SET {set_clause} WHERE id = ?",
            values,
            fields.get("filepath"),  # type: ignore[arg-type]
        )
        if cursor.rowcount == 0:
            raise BookNotFoundError(f"Book with id {book_id} not found")

        book = self.get_by_id(book_id)
        assert book is not None
        return book

    def update_notes(self, book_id: str, notes: str | None) -> Book:
        """Replace a book's notes. Blank notes are stored as NULL."""
        if notes is not None and not notes.strip():
            notes = None
        return self.update_book(book_id, notes=notes)

    def upsert_by_filepath(
        self,
        filepath: str,
        title: str,
        author: str | None = None,
        publication_year: int | None = None,
    ) -> Book:
        """Create a book for filepath, or refresh the one already there.

        Notes on an existing book are left alone.
        """
        existing = self.get_by_filepath(filepath)
        if existing is None:
            return self.add_book(
                title, author=author, publication_year=publication_year, filepath=filepath
            )
        return self.update_book(
            existing.id, title=title, author=author, publication_year=publication_year
        )

    def delete_book(self, book_id: str) -> None:
        """Delete a book from the catalog.

        Raises:
            BookNotFoundError: If the book_id does not exist.
        """
        cursor = self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        self._conn.commit()

        if cursor.rowcount == 0:
            raise BookNotFoundError(f"Book with id {book_id} not found")
