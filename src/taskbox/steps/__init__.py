"""Step execution — the contract consumed by the workflow layer."""

from taskbox.steps.executor import StepExecutor, StepOutcome, StepPlanLoader, parse_step
from taskbox.steps.models import (
    FileOperationInput,
    FileOperationStep,
    FileOptions,
    ShellCommandInput,
    ShellCommandStep,
    Step,
    StepPlan,
)

__all__ = [
    "FileOperationInput",
    "FileOperationStep",
    "FileOptions",
    "ShellCommandInput",
    "ShellCommandStep",
    "Step",
    "StepExecutor",
    "StepOutcome",
    "StepPlan",
    "StepPlanLoader",
    "parse_step",
]
