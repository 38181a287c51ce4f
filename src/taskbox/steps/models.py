"""Pydantic models for step descriptors and step plans.

A step is ``{"type": ..., "input": {...}}`` as handed down by the workflow
layer; the ``type`` field selects the input schema.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator


class ShellCommandInput(BaseModel):
    command: str = Field(..., min_length=1, description="Command line to run in the sandbox shell.")
    exec_dir: str | None = Field(default=None, description="Directory relative to the sandbox home.")
    timeout: float | None = Field(default=None, gt=0, description="Per-step timeout override in seconds.")


class FileOptions(BaseModel):
    start_line: int | None = Field(default=None, ge=0)
    end_line: int | None = Field(default=None, ge=0)
    append: bool = False


class FileOperationInput(BaseModel):
    operation: Literal["read", "write", "delete"]
    file: str = Field(..., min_length=1, description="Path relative to the sandbox home.")
    content: str | None = None
    options: FileOptions = Field(default_factory=FileOptions)

    @model_validator(mode="after")
    def _require_content(self) -> FileOperationInput:
        if self.operation == "write" and self.content is None:
            msg = "write operation requires 'content'"
            raise ValueError(msg)
        return self


class ShellCommandStep(BaseModel):
    type: Literal["shell_command"]
    input: ShellCommandInput


class FileOperationStep(BaseModel):
    type: Literal["file_operation"]
    input: FileOperationInput


Step = Annotated[ShellCommandStep | FileOperationStep, Field(discriminator="type")]


class StepPlan(BaseModel):
    """An ordered list of steps run against one sandbox (``taskbox run``)."""

    version: str = "1"
    name: str = ""
    sandbox: str | None = Field(default=None, description="Sandbox id to create; generated if omitted.")
    stop_on_error: bool = True
    steps: list[Step] = Field(..., min_length=1)
