# ABOUTME: Record types for rows in the books and users tables.
# ABOUTME: Converts sqlite3 rows to dataclasses and produces ISO-8601 timestamps.

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string with microseconds."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def next_timestamp(previous: str) -> str:
    """A timestamp strictly later than ``previous``.

    Normally just the current time; bumps by one microsecond when the clock
    has not advanced past ``previous``.
    """
    now = datetime.now(timezone.utc)
    try:
        earlier = datetime.fromisoformat(previous)
    except ValueError:
        return now.isoformat(timespec="microseconds")
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    if now <= earlier:
        now = earlier + timedelta(microseconds=1)
    return now.astimezone(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class Book:
    """A book in the catalog."""

    id: str
    title: str
    author: str | None
    publication_year: int | None
    filepath: str | None
    notes: str | None
    created_at: str
    updated_at: str

    @property
    def created_date(self) -> str:
        """Date part of created_at, for display."""
        return self.created_at.split("T", 1)[0]

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())


@dataclass
class User:
    """An account allowed to edit the catalog."""

    id: str
    username: str
    password_hash: str
    created_at: str

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, username={self.username!r})"


def row_to_book(row: Any) -> Book:
    """Convert a books row (dict-like) to a Book."""
    return Book(
        id=row["id"],
        title=row["title"],
        author=row["author"],
        publication_year=row["publication_year"],
        filepath=row["filepath"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_user(row: Any) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )
