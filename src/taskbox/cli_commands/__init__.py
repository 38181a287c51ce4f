"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from taskbox.cli_commands.creds import creds
    from taskbox.cli_commands.run import run
    from taskbox.cli_commands.sandbox import create, exec_cmd, files

    cli.add_command(create)
    cli.add_command(exec_cmd)
    cli.add_command(files)
    cli.add_command(run)
    cli.add_command(creds)
