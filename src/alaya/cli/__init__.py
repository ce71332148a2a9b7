# ABOUTME: CLI package for Alaya, built on Click.
# ABOUTME: Defines the root command group and registers subcommands.

import click

from alaya.cli.commands import ls_cmd, migrate_cmd, serve_cmd


@click.group()
@click.version_option(package_name="alaya")
def cli() -> None:
    """Alaya - a personal book-notes library."""


cli.add_command(serve_cmd.serve)
cli.add_command(migrate_cmd.migrate)
cli.add_command(ls_cmd.ls)
