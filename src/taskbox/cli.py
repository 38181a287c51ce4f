"""taskbox CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from taskbox import __version__


@click.group()
@click.version_option(version=__version__, prog_name="taskbox")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Sandbox storage root (defaults to $SANDBOX_PATH or ./sandbox).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="warning",
    help="Logging verbosity.",
)
@click.option("--telemetry", is_flag=True, help="Export tracing spans to the console.")
@click.pass_context
def main(ctx: click.Context, root: Path | None, log_level: str, telemetry: bool) -> None:
    """taskbox — sandboxed shells, files and browser sessions."""
    from rich.logging import RichHandler

    from taskbox.config import Settings

    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )

    if telemetry:
        from taskbox.utils.telemetry import configure_telemetry

        configure_telemetry()

    settings = Settings.from_env()
    if root is not None:
        settings = settings.model_copy(update={"sandbox_path": root})
    ctx.obj = settings


# Register subcommands
from taskbox.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
