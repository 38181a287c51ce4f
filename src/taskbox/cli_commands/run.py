"""``taskbox run`` — execute a YAML step plan in a sandbox."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from taskbox.cli_commands._output import console, print_step_outcomes
from taskbox.config import Settings
from taskbox.errors import StepValidationError, TaskboxError

if TYPE_CHECKING:
    from taskbox.steps.executor import StepOutcome
    from taskbox.steps.models import StepPlan


@click.command()
@click.argument("plan", type=click.Path(exists=True))
@click.option("--sandbox", "sandbox_id", default=None, help="Sandbox id (overrides the plan's).")
@click.option("--dry-run", is_flag=True, help="Validate the plan only, do not execute.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.pass_obj
def run(
    settings: Settings,
    plan: str,
    sandbox_id: str | None,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Execute the steps defined in PLAN yaml file."""
    from taskbox.steps.executor import StepPlanLoader

    try:
        step_plan = StepPlanLoader(Path(plan)).load()
    except StepValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    if dry_run:
        console.print("[green]Step plan validated successfully.[/green]")
        console.print(f"  Name: {step_plan.name or '(unnamed)'}")
        console.print(f"  Steps: {len(step_plan.steps)}")
        return

    try:
        outcomes = asyncio.run(_run_plan(settings, step_plan, sandbox_id or step_plan.sandbox))
    except TaskboxError as exc:
        console.print(f"[red]Execution error:[/red] {exc}")
        sys.exit(1)

    print_step_outcomes(outcomes, as_json=as_json)
    if not all(o.ok for o in outcomes):
        sys.exit(1)


async def _run_plan(settings: Settings, step_plan: StepPlan, sandbox_id: str | None) -> list[StepOutcome]:
    from taskbox.sandbox.manager import SandboxManager
    from taskbox.steps.executor import StepExecutor

    async with SandboxManager(settings) as manager:
        sandbox = manager.create_sandbox(sandbox_id)
        return await StepExecutor(sandbox).execute_all(step_plan)
