# ABOUTME: PDF document-info extraction using PyMuPDF.
# ABOUTME: Drops values that decode to control characters or replacement glyphs.

import logging
import unicodedata
from pathlib import Path

import fitz  # PyMuPDF

from alaya.formats.types import FileMetadata

logger = logging.getLogger(__name__)


class PdfReadError(Exception):
    """Raised when a PDF file cannot be opened."""


def is_printable_text(value: str | None) -> bool:
    """True for non-empty text without control characters (tab/newline/CR allowed)."""
    if not value:
        return False
    if "\ufffd" in value:
        return False
    for char in value:
        if char in "\t\n\r":
            continue
        if unicodedata.category(char) == "Cc":
            return False
    return True


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if is_printable_text(value) else None


def read_pdf_metadata(path: Path) -> FileMetadata:
    """Read title, author, subject and creation date from a PDF's info dictionary.

    Raises:
        PdfReadError: If the file cannot be opened as a PDF.
    """
    try:
        doc = fitz.open(str(path))
    except Exception as exc:
        raise PdfReadError(f"Failed to read PDF: {path}: {exc}") from exc

    try:
        info = doc.metadata or {}
    finally:
        doc.close()

    return FileMetadata(
        title=_clean(info.get("title")),
        author=_clean(info.get("author")),
        description=_clean(info.get("subject")),
        date=_clean(info.get("creationDate")),
    )
