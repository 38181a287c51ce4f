"""StepExecutor — runs workflow step descriptors against a sandbox."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import TypeAdapter, ValidationError

from taskbox.errors import SandboxError, ShellSessionError, StepExecutionError, StepValidationError
from taskbox.steps.models import (
    FileOperationStep,
    ShellCommandStep,
    Step,
    StepPlan,
)
from taskbox.utils.telemetry import ATTR_SANDBOX_ID, ATTR_STEP_TYPE, get_tracer

if TYPE_CHECKING:
    from taskbox.sandbox.sandbox import Sandbox

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_step_adapter: TypeAdapter[ShellCommandStep | FileOperationStep] = TypeAdapter(Step)


def parse_step(step: dict[str, Any] | ShellCommandStep | FileOperationStep) -> ShellCommandStep | FileOperationStep:
    """Validate a raw step descriptor.

    Raises:
        StepValidationError: If the descriptor does not match a known step type.
    """
    if isinstance(step, (ShellCommandStep, FileOperationStep)):
        return step
    try:
        return _step_adapter.validate_python(step)
    except ValidationError as exc:
        raise StepValidationError(str(exc)) from exc


@dataclass
class StepOutcome:
    """One entry of :meth:`StepExecutor.execute_all`."""

    index: int
    type: str
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StepExecutor:
    """Maps ``shell_command`` and ``file_operation`` steps onto sandbox calls.

    Results are plain values so the workflow layer can store them as-is:

    * ``shell_command`` -> ``{"command", "output", "exit_code"}``
    * ``file_operation`` read -> file text (optionally a line slice)
    * ``file_operation`` write/delete -> ``{"success": True, "file": path}``
    """

    def __init__(self, sandbox: Sandbox) -> None:
        self._sandbox = sandbox

    @property
    def sandbox(self) -> Sandbox:
        return self._sandbox

    async def execute(self, step: dict[str, Any] | ShellCommandStep | FileOperationStep) -> Any:
        """Validate and run a single step.

        Raises:
            StepValidationError: On a malformed descriptor.
            StepExecutionError: When the sandbox operation fails.
        """
        parsed = parse_step(step)
        with _tracer.start_as_current_span("step.execute") as span:
            span.set_attribute(ATTR_SANDBOX_ID, self._sandbox.id)
            span.set_attribute(ATTR_STEP_TYPE, parsed.type)
            try:
                if isinstance(parsed, ShellCommandStep):
                    return await self._shell_command(parsed)
                return self._file_operation(parsed)
            except (SandboxError, ShellSessionError) as exc:
                logger.warning("Step %s failed in sandbox %s: %s", parsed.type, self._sandbox.id, exc)
                raise StepExecutionError(parsed.type, str(exc)) from exc

    async def execute_all(self, plan: StepPlan) -> list[StepOutcome]:
        """Run every step of *plan* in order, honouring ``stop_on_error``."""
        outcomes: list[StepOutcome] = []
        for index, step in enumerate(plan.steps):
            try:
                result = await self.execute(step)
            except StepExecutionError as exc:
                outcomes.append(StepOutcome(index=index, type=step.type, error=str(exc)))
                if plan.stop_on_error:
                    break
                continue
            outcomes.append(StepOutcome(index=index, type=step.type, result=result))
        return outcomes

    async def _shell_command(self, step: ShellCommandStep) -> dict[str, Any]:
        params = step.input
        if params.exec_dir:
            self._sandbox.create_directory(params.exec_dir)
        result = await self._sandbox.execute_command(
            params.command,
            cwd=params.exec_dir,
            timeout=params.timeout,
        )
        return result.model_dump()

    def _file_operation(self, step: FileOperationStep) -> Any:
        params = step.input
        sandbox = self._sandbox

        if params.operation == "read":
            content = sandbox.read_file(params.file)
            opts = params.options
            if opts.start_line is None and opts.end_line is None:
                return content
            lines = content.split("\n")
            return "\n".join(lines[opts.start_line or 0 : opts.end_line])

        if params.operation == "write":
            assert params.content is not None
            sandbox.write_file(params.file, params.content, append=params.options.append)
            return {"success": True, "file": params.file}

        sandbox.delete_file(params.file)
        return {"success": True, "file": params.file}


class StepPlanLoader:
    """Load and validate a step plan YAML file into a :class:`StepPlan`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> StepPlan:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing.

        Raises:
            StepValidationError: On YAML parse errors or schema validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StepValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise StepValidationError(f"YAML parse error: {exc}") from exc

        if not isinstance(data, dict):
            raise StepValidationError("Step plan YAML must be a mapping")

        try:
            return StepPlan.model_validate(data)
        except ValidationError as exc:
            raise StepValidationError(str(exc)) from exc
