# ABOUTME: EPUB metadata extraction using ebooklib.
# ABOUTME: Defensive wrapper that handles malformed files gracefully.

import logging
from pathlib import Path

from ebooklib import epub

from alaya.formats.types import FileMetadata

logger = logging.getLogger(__name__)


class EpubReadError(Exception):
    """Raised when an EPUB file cannot be read or parsed."""


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    """Extract a single metadata value from an EpubBook, or None if missing."""
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Metadata entries are tuples of (value, attributes)
    value = values[0][0]
    return str(value).strip() if value else None


def read_epub_metadata(path: Path) -> FileMetadata:
    """Extract metadata from an EPUB file.

    Args:
        path: Path to the EPUB file.

    Returns:
        FileMetadata populated with the Dublin Core fields that are present.

    Raises:
        EpubReadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    return FileMetadata(
        title=_get_metadata_value(book, "DC", "title"),
        author=_get_metadata_value(book, "DC", "creator"),
        publisher=_get_metadata_value(book, "DC", "publisher"),
        date=_get_metadata_value(book, "DC", "date"),
        language=_get_metadata_value(book, "DC", "language"),
        description=_get_metadata_value(book, "DC", "description"),
    )
