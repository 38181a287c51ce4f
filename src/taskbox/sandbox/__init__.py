"""Sandbox subsystem — per-task homes with shell and browser sessions."""

from taskbox.sandbox.manager import SandboxManager
from taskbox.sandbox.models import CommandResult, FileInfo
from taskbox.sandbox.sandbox import Sandbox

__all__ = [
    "CommandResult",
    "FileInfo",
    "Sandbox",
    "SandboxManager",
]
