# ABOUTME: Shared Click options and logging setup for Alaya CLI commands.
# ABOUTME: Provides reusable decorators for common flags like --db and --verbose.

import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from alaya.config import Settings
from alaya.db.connection import DEFAULT_DB_PATH

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Path to library database (default: $ALAYA_DB or ./{DEFAULT_DB_PATH})",
)

verbose_option = click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Show debug logging.",
)


def setup_logging(verbose: bool) -> None:
    """Route log records through Rich. INFO by default, DEBUG with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_settings(db_path: Path | None = None) -> Settings:
    """Settings from the environment, with --db taking precedence."""
    settings = Settings.from_env()
    if db_path is not None:
        settings.db_path = db_path
    return settings
