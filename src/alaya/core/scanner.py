# ABOUTME: Directory scanner for book files in a local library.
# ABOUTME: Walks a directory tree, reads embedded metadata, and upserts books by filepath.

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from alaya.db.catalog import BookCatalog, ConstraintViolationError
from alaya.formats.epub import EpubReadError, read_epub_metadata
from alaya.formats.pdf import PdfReadError, read_pdf_metadata
from alaya.formats.types import FileMetadata

logger = logging.getLogger(__name__)

BOOK_EXTENSIONS: frozenset[str] = frozenset({".epub", ".mobi", ".pdf", ".docx", ".txt"})

_YEAR_RUN_RE = re.compile(r"(?=(\d{4}))")


def parse_year(date: str | None) -> int | None:
    """Pull a publication year out of a free-form date string.

    A leading four-digit year in 1000..2100 wins. Otherwise the first run
    of four digits in 1800..2100 anywhere in the string is used, which
    covers PDF dates like ``D:19990101``.
    """
    if not date:
        return None

    head = date[:4]
    if len(head) == 4 and head.isascii() and head.isdigit():
        year = int(head)
        if 1000 <= year <= 2100:
            return year

    for match in _YEAR_RUN_RE.finditer(date):
        year = int(match.group(1))
        if 1800 <= year <= 2100:
            return year
    return None


@dataclass
class ScannedFile:
    """A book file found under the scan root."""

    path: Path
    relative_path: str
    metadata: FileMetadata = field(default_factory=FileMetadata)

    @property
    def title(self) -> str | None:
        return self.metadata.title

    @property
    def publication_year(self) -> int | None:
        return parse_year(self.metadata.date)


@dataclass
class SaveResult:
    """Summary of saving scanned files to the catalog."""

    saved: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[tuple[str, str]] = field(default_factory=list)


def read_file_metadata(path: Path) -> FileMetadata:
    """Read embedded metadata, falling back to the file stem as the title.

    EPUB and PDF files are parsed; other formats get their title from the
    file name. Unreadable EPUB and PDF files are logged and yield empty
    metadata, so they are skipped when saving.
    """
    suffix = path.suffix.lower()
    if suffix == ".epub":
        try:
            return read_epub_metadata(path)
        except EpubReadError as exc:
            logger.warning("%s", exc)
            return FileMetadata()
    if suffix == ".pdf":
        try:
            return read_pdf_metadata(path)
        except PdfReadError as exc:
            logger.warning("%s", exc)
            return FileMetadata()
    return FileMetadata(title=path.stem)


def scan_directory(root: Path) -> list[ScannedFile]:
    """Walk a directory tree and collect every book file.

    Args:
        root: The top-level directory to scan.

    Returns:
        Files sorted by path, each with its path relative to ``root``.

    Raises:
        NotADirectoryError: If root does not exist or is not a directory.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"'{root}' is not a directory")

    base = root.resolve()
    found: list[ScannedFile] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in BOOK_EXTENSIONS:
            continue
        try:
            relative = path.resolve().relative_to(base).as_posix()
        except ValueError:
            # Symlink pointing outside the root.
            relative = path.as_posix()
        found.append(
            ScannedFile(path=path, relative_path=relative, metadata=read_file_metadata(path))
        )
    return found


def save_scanned(files: list[ScannedFile], catalog: BookCatalog) -> SaveResult:
    """Upsert scanned files into the catalog keyed by relative filepath.

    Files without a title are skipped. Storage errors are recorded per
    file so one bad entry does not stop the rest.
    """
    result = SaveResult()
    for scanned in files:
        if not scanned.title:
            result.skipped += 1
            continue
        try:
            catalog.upsert_by_filepath(
                scanned.relative_path,
                scanned.title,
                author=scanned.metadata.author,
                publication_year=scanned.publication_year,
            )
        except (ConstraintViolationError, ValueError) as exc:
            result.errors += 1
            result.error_details.append((scanned.relative_path, str(exc)))
            continue
        result.saved += 1
    return result
