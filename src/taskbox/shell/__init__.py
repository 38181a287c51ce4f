"""Interactive shell sessions backed by child processes."""

from taskbox.shell.session import ShellSession

__all__ = ["ShellSession"]
