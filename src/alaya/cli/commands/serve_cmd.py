# ABOUTME: The `alaya serve` command for running the web UI.
# ABOUTME: Migrates the database first and refuses to serve on a half-migrated schema.

import logging
import sqlite3
from pathlib import Path

import click
from rich.console import Console

from alaya.cli.options import db_option, load_settings, setup_logging, verbose_option
from alaya.db.migrations import MigrationError

logger = logging.getLogger(__name__)


@click.command("serve")
@click.option("--host", default=None, help="Interface to bind (default: $HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to bind (default: $PORT or 3000).")
@db_option
@verbose_option
def serve(host: str | None, port: int | None, db_path: Path | None, verbose: bool) -> None:
    """Run the web server."""
    from alaya.web import create_app

    console = Console()
    setup_logging(verbose)
    settings = load_settings(db_path)
    if host:
        settings.host = host
    if port:
        settings.port = port

    try:
        app = create_app(settings)
    except (MigrationError, sqlite3.DatabaseError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    logger.info("Serving on http://%s:%d", settings.host, settings.port)
    try:
        app.run(host=settings.host, port=settings.port, debug=verbose)
    finally:
        app.extensions["alaya_gpt"].close()
