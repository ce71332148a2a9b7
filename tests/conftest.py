# ABOUTME: Shared pytest fixtures for Alaya tests.
# ABOUTME: Provides temporary databases, a catalog, and sample EPUB and library trees.

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest
from ebooklib import epub

from alaya.db.catalog import BookCatalog
from alaya.db.connection import open_database


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path for a fresh database file."""
    return tmp_path / "alaya.db"


@pytest.fixture
def conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    """A fully migrated connection, closed after the test."""
    connection = open_database(db_path)
    yield connection
    connection.close()


@pytest.fixture
def catalog(conn: sqlite3.Connection) -> BookCatalog:
    """A BookCatalog backed by a temporary database."""
    return BookCatalog(conn)


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of tests."""
    for name in ("OPENAI_API_KEY", "ALAYA_DB", "DATABASE_URL", "DISABLE_SIGNUPS", "LIBRARY_PATH"):
        monkeypatch.delenv(name, raising=False)


def _write_epub(path: Path, title: str, author: str | None = None, **dc: str) -> Path:
    book = epub.EpubBook()
    book.set_identifier(f"id-{path.stem}")
    book.set_title(title)
    book.set_language("en")
    if author:
        book.add_author(author)
    for name, value in dc.items():
        book.add_metadata("DC", name, value)

    # Add a minimal chapter so the EPUB is structurally valid
    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>Chapter 1</h1><p>Content.</p></body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    path.parent.mkdir(parents=True, exist_ok=True)
    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """A minimal valid EPUB file with known metadata."""
    return _write_epub(
        tmp_path / "invisible_cities.epub",
        "Invisible Cities",
        "Italo Calvino",
        publisher="Harcourt",
        date="1972-11-01",
        description="Marco Polo describes imagined cities to Kublai Khan.",
    )


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """A file with an .epub extension that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def library_tree(tmp_path: Path) -> Path:
    """A small library directory with mixed formats.

    Layout:
        library/
            Italo Calvino/
                Invisible Cities.epub
            notes/
                reading-list.txt
                cover.jpg
            Umberto Eco - The Name of the Rose.MOBI
    """
    root = tmp_path / "library"
    _write_epub(
        root / "Italo Calvino" / "Invisible Cities.epub",
        "Invisible Cities",
        "Italo Calvino",
        date="1972",
    )
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "reading-list.txt").write_text("books to read")
    (root / "notes" / "cover.jpg").write_bytes(b"fake jpg")
    (root / "Umberto Eco - The Name of the Rose.MOBI").write_bytes(b"fake mobi")
    return root
