"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from taskbox.sandbox.models import CommandResult, FileInfo
    from taskbox.steps.executor import StepOutcome

console = Console()


def print_command_result(result: CommandResult, *, as_json: bool = False) -> None:
    """Print a command's output followed by its exit status."""
    if as_json:
        console.print_json(result.model_dump_json())
        return

    if result.output:
        console.print(result.output, end="" if result.output.endswith("\n") else "\n", markup=False)
    style = "green" if result.exit_code == 0 else "red"
    console.print(f"[{style}]exit code: {result.exit_code}[/{style}]")


def print_files_table(entries: list[FileInfo]) -> None:
    """Pretty-print directory entries as a table."""
    table = Table(title="Files")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Modified")

    for info in entries:
        kind = "dir" if info.is_directory else "file"
        table.add_row(info.name, kind, str(info.size), info.modified.strftime("%Y-%m-%d %H:%M:%S"))

    console.print(table)


def print_step_outcomes(outcomes: list[StepOutcome], *, as_json: bool = False) -> None:
    """Pretty-print the results of a step plan."""
    if as_json:
        data = [
            {"index": o.index, "type": o.type, "result": o.result, "error": o.error}
            for o in outcomes
        ]
        console.print_json(json.dumps(data, default=str))
        return

    table = Table(title="Step Results")
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    table.add_column("Result")

    for outcome in outcomes:
        status = "[green]ok[/green]" if outcome.ok else "[red]failed[/red]"
        detail = outcome.error if outcome.error else _summarise(outcome.result)
        table.add_row(str(outcome.index), outcome.type, status, _truncate(detail))

    console.print(table)


def print_domains(domains: list[str]) -> None:
    if not domains:
        console.print("[yellow]No stored credentials.[/yellow]")
        return
    for domain in sorted(domains):
        console.print(f"  {domain}")


def _summarise(result: Any) -> str:
    if isinstance(result, dict) and "output" in result:
        return f"exit={result.get('exit_code')} {str(result['output']).strip()}"
    if isinstance(result, dict):
        return json.dumps(result, default=str)
    return str(result)


def _truncate(text: str, max_len: int = 80) -> str:
    text = text.replace("\n", " ")
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
