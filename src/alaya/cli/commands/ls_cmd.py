# ABOUTME: The `alaya ls` command for listing cataloged books.
# ABOUTME: Displays a Rich table of books, optionally filtered by author or notes.

import sqlite3
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from alaya.cli.options import db_option, load_settings
from alaya.db.catalog import BookCatalog
from alaya.db.connection import open_database
from alaya.db.migrations import MigrationError


@click.command("ls")
@db_option
@click.option("--author", "author_filter", default=None, help="Only books by this exact author.")
@click.option("--year", "year_filter", type=int, default=None, help="Only books from this year.")
@click.option("--notes", "notes_only", is_flag=True, default=False, help="Only books with notes.")
def ls(
    db_path: Path | None,
    author_filter: str | None,
    year_filter: int | None,
    notes_only: bool,
) -> None:
    """List books in the library, newest first."""
    console = Console()
    try:
        conn = open_database(load_settings(db_path).db_path)
    except (MigrationError, sqlite3.DatabaseError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    try:
        books = BookCatalog(conn).list_books(
            author=author_filter, year=year_filter, with_notes=notes_only
        )
    finally:
        conn.close()

    if not books:
        console.print("[yellow]No books in the library.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=8)
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Year", width=6)
    table.add_column("File")
    table.add_column("Notes", width=5)

    for book in books:
        table.add_row(
            book.id[:8],
            book.title,
            book.author or "[dim]unknown[/dim]",
            str(book.publication_year or ""),
            book.filepath or "",
            "yes" if book.has_notes else "",
        )

    console.print(table)
    console.print(f"\n[dim]{len(books)} book(s)[/dim]")
