# ABOUTME: Metadata read from an ebook file on disk.
# ABOUTME: The interchange format between format readers and the directory scanner.

from dataclasses import dataclass


@dataclass
class FileMetadata:
    """Descriptive fields embedded in an ebook file. All optional."""

    title: str | None = None
    author: str | None = None
    publisher: str | None = None
    date: str | None = None
    language: str | None = None
    description: str | None = None

    def display_fields(self) -> list[tuple[str, str]]:
        """Non-empty fields as (label, value) pairs, in display order."""
        fields = [
            ("Title", self.title),
            ("Author", self.author),
            ("Publisher", self.publisher),
            ("Date", self.date),
            ("Language", self.language),
            ("Description", self.description),
        ]
        return [(label, value) for label, value in fields if value]
