"""Data models for the sandbox subsystem."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CommandResult(BaseModel):
    """Result of :meth:`~taskbox.sandbox.sandbox.Sandbox.execute_command`."""

    command: str = Field(..., description="The command line that was sent to the shell.")
    output: str = Field(default="", description="Interleaved stdout/stderr produced by the command.")
    exit_code: int | None = Field(default=None, description="Exit status of the command, if known.")


class FileInfo(BaseModel):
    """Metadata about a path inside a sandbox home."""

    name: str
    path: str = Field(..., description="Path relative to the sandbox home, as given by the caller.")
    size: int
    is_directory: bool
    is_file: bool
    created: datetime
    modified: datetime
    accessed: datetime
