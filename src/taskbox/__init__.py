"""taskbox — per-task sandboxes with shell, file, browser and credential access."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from taskbox.config import Settings as Settings
    from taskbox.sandbox.manager import SandboxManager as SandboxManager
    from taskbox.steps.executor import StepExecutor as StepExecutor

_LAZY_EXPORTS = {
    "SandboxManager": "taskbox.sandbox.manager",
    "Settings": "taskbox.config",
    "StepExecutor": "taskbox.steps.executor",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'taskbox' has no attribute {name!r}")
