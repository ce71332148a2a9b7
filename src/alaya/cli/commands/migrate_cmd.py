# ABOUTME: The `alaya migrate` command for bringing a database up to date.
# ABOUTME: Applies pending schema steps and reports the resulting version.

import sqlite3
from pathlib import Path

import click
from rich.console import Console

from alaya.cli.options import db_option, load_settings, setup_logging, verbose_option
from alaya.db.connection import open_database
from alaya.db.migrations import MigrationError, applied_versions, current_version


@click.command("migrate")
@db_option
@verbose_option
def migrate(db_path: Path | None, verbose: bool) -> None:
    """Apply pending schema migrations to the library database."""
    console = Console()
    setup_logging(verbose)
    settings = load_settings(db_path)

    try:
        conn = open_database(settings.db_path)
    except (MigrationError, sqlite3.DatabaseError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    try:
        version = current_version(conn)
        steps = len(applied_versions(conn))
    finally:
        conn.close()

    console.print(
        f"[green]{settings.db_path}[/green] is at schema version {version} "
        f"[dim]({steps} step(s) recorded)[/dim]"
    )
