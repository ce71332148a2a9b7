# ABOUTME: The `alayascan` command: summarize a book by title or scan a directory of book files.
# ABOUTME: Summaries need OPENAI_API_KEY; without it, or on API failure, the command still succeeds.

import logging
import sqlite3
from pathlib import Path

import click
from rich.console import Console

from alaya.cli.options import db_option, load_settings, setup_logging, verbose_option
from alaya.core.scanner import SaveResult, save_scanned, scan_directory
from alaya.db.catalog import BookCatalog
from alaya.db.connection import open_database
from alaya.db.migrations import MigrationError
from alaya.gpt import GptClient, GptConfig, SummaryError

logger = logging.getLogger(__name__)


def _open_catalog(db_path: Path, console: Console) -> BookCatalog:
    try:
        conn = open_database(db_path)
    except (MigrationError, sqlite3.DatabaseError) as exc:
        console.print(f"[red]Error:[/red] {db_path}: {exc}")
        raise SystemExit(1) from exc
    return BookCatalog(conn)


def _summarize(title: str, console: Console) -> str | None:
    config = GptConfig.from_env()
    if config.api_key is None:
        console.print(
            "[yellow]OPENAI_API_KEY is not configured; skipping summary.[/yellow]"
        )
        return None

    with GptClient(config) as client:
        try:
            return client.summarize_book(title)
        except SummaryError as exc:
            logger.warning('Failed to summarize "%s": %s', title, exc)
            console.print("[yellow]Summary unavailable.[/yellow]")
            return None


def _run_title(title: str, save: bool, db_path: Path, console: Console) -> None:
    console.print(f'Scanning "{title}"...')

    # Only touch the database when asked to save or when one already exists.
    catalog = _open_catalog(db_path, console) if save or db_path.exists() else None
    try:
        existing = catalog.find_by_title(title) if catalog else []
        for book in existing:
            console.print(
                f"[dim]Already cataloged:[/dim] {book.title}"
                f"{f' by {book.author}' if book.author else ''} [dim]({book.id})[/dim]"
            )

        summary = _summarize(title, console)
        if summary:
            console.print(f"\nSummary: {summary}")

        if save and catalog is not None:
            if existing:
                console.print("[yellow]Not saved: a book with this title exists.[/yellow]")
            else:
                book = catalog.add_book(title, notes=summary)
                console.print(f"[green]Saved[/green] {book.title} [dim]({book.id})[/dim]")
    finally:
        if catalog is not None:
            catalog.close()


def _print_save_result(result: SaveResult, console: Console) -> None:
    console.print(f"Saved {result.saved} book(s) to database")
    if result.skipped:
        console.print(f"[yellow]Skipped {result.skipped} file(s) without a title[/yellow]")
    for path, error in result.error_details:
        console.print(f"[red]Error saving {path}:[/red] {error}")


def _run_scan(directory: Path, save: bool, db_path: Path, console: Console) -> None:
    console.print(f"Scanning directory: {directory}")
    if save:
        console.print("Saving books to database (paths relative to the scanned directory)")
    console.print()

    files = scan_directory(directory)
    for scanned in files:
        console.print(str(scanned.path), markup=False)
        for label, value in scanned.metadata.display_fields():
            if label == "Description" and len(value) > 200:
                value = value[:200] + "..."
            console.print(f"  {label}: {value}", markup=False)
        console.print()

    console.print(f"Found {len(files)} book file(s)")

    if save:
        catalog = _open_catalog(db_path, console)
        try:
            _print_save_result(save_scanned(files, catalog), console)
        finally:
            catalog.close()


@click.command("alayascan")
@click.argument("title_words", nargs=-1)
@click.option(
    "-d",
    "--scan-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Scan a directory for book files (epub, mobi, pdf, docx, txt).",
)
@click.option(
    "-s",
    "--save",
    is_flag=True,
    default=False,
    help="Save results to the library database.",
)
@db_option
@verbose_option
def alayascan(
    title_words: tuple[str, ...],
    scan_dir: Path | None,
    save: bool,
    db_path: Path | None,
    verbose: bool,
) -> None:
    """Summarize a book by TITLE, or scan a directory with --scan-dir."""
    console = Console()
    setup_logging(verbose)
    resolved_db = load_settings(db_path).db_path

    if scan_dir is not None:
        _run_scan(scan_dir, save, resolved_db, console)
        return

    title = " ".join(title_words).strip()
    if not title:
        raise click.UsageError('Give a book title, e.g. alayascan "Invisible Cities"')
    _run_title(title, save, resolved_db, console)
