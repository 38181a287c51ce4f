"""``taskbox create`` / ``exec`` / ``files`` — one-shot sandbox commands.

Sandboxes live in memory only for the duration of a command; re-creating a
sandbox by id reuses its home directory on disk.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from taskbox.cli_commands._output import console, print_command_result, print_files_table
from taskbox.config import Settings
from taskbox.errors import TaskboxError

if TYPE_CHECKING:
    from taskbox.sandbox.models import CommandResult


@click.command()
@click.argument("name", required=False)
@click.pass_obj
def create(settings: Settings, name: str | None) -> None:
    """Create (or re-seed) a sandbox and print its home directory."""
    from taskbox.sandbox.manager import SandboxManager

    try:
        sandbox = SandboxManager(settings).create_sandbox(name)
    except TaskboxError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[green]Sandbox ready:[/green] {sandbox.id}")
    console.print(f"  Home: {sandbox.home_path}")


@click.command("exec")
@click.argument("sandbox_id")
@click.argument("command", nargs=-1, required=True)
@click.option("--cwd", default=None, help="Working directory relative to the sandbox home.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for completion.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_obj
def exec_cmd(
    settings: Settings,
    sandbox_id: str,
    command: tuple[str, ...],
    cwd: str | None,
    timeout: float | None,
    as_json: bool,
) -> None:
    """Run COMMAND inside sandbox SANDBOX_ID."""
    from taskbox.sandbox.manager import SandboxManager

    async def _exec() -> CommandResult:
        async with SandboxManager(settings) as manager:
            sandbox = manager.create_sandbox(sandbox_id)
            return await sandbox.execute_command(" ".join(command), cwd=cwd, timeout=timeout)

    try:
        result = asyncio.run(_exec())
    except TaskboxError as exc:
        console.print(f"[red]Execution error:[/red] {exc}")
        sys.exit(1)

    print_command_result(result, as_json=as_json)
    if result.exit_code:
        sys.exit(result.exit_code)


@click.command()
@click.argument("sandbox_id")
@click.argument("path", default=".")
@click.pass_obj
def files(settings: Settings, sandbox_id: str, path: str) -> None:
    """List PATH inside sandbox SANDBOX_ID."""
    from taskbox.sandbox.manager import SandboxManager

    try:
        sandbox = SandboxManager(settings).create_sandbox(sandbox_id)
        names = sandbox.list_files(path)
        entries = [sandbox.get_file_info(f"{path}/{name}") for name in names]
    except TaskboxError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    print_files_table(entries)
