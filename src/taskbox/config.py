"""Runtime settings — storage roots, key material, timeouts.

Values are read from the environment once at startup via
:meth:`Settings.from_env`; the resulting object is passed explicitly to
:class:`~taskbox.sandbox.manager.SandboxManager` rather than being looked up
globally.
"""

from __future__ import annotations

import logging
import os
import warnings
from functools import cached_property
from pathlib import Path

from pydantic import BaseModel, Field

from taskbox.credentials.crypto import derive_key

logger = logging.getLogger(__name__)

DEFAULT_ENCRYPTION_KEY = "taskbox-insecure-default-key"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

_INSECURE_KEY_MSG = (
    "ENCRYPTION_KEY is not set; credentials are encrypted with a built-in "
    "placeholder key. Set ENCRYPTION_KEY before storing real credentials."
)


class Settings(BaseModel):
    """Configuration for a :class:`~taskbox.sandbox.manager.SandboxManager`."""

    sandbox_path: Path = Field(
        default_factory=lambda: Path.cwd() / "sandbox",
        description="Root directory holding every sandbox home.",
    )
    credentials_path: Path | None = Field(
        default=None,
        description="Directory of the encrypted credential file (defaults to <sandbox_path>/credentials).",
    )
    encryption_key: str = Field(
        default=DEFAULT_ENCRYPTION_KEY,
        description="Passphrase the credential key is derived from.",
    )
    command_timeout: float = Field(default=30.0, description="Default execute_command timeout in seconds.")
    max_redirects: int = Field(default=5, description="Redirects followed per browser request.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent by browser sessions.")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``SANDBOX_PATH``, ``CREDENTIALS_PATH``,
        ``ENCRYPTION_KEY`` and ``TASKBOX_COMMAND_TIMEOUT``."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get("SANDBOX_PATH"):
            values["sandbox_path"] = Path(env["SANDBOX_PATH"])
        if env.get("CREDENTIALS_PATH"):
            values["credentials_path"] = Path(env["CREDENTIALS_PATH"])
        if env.get("ENCRYPTION_KEY"):
            values["encryption_key"] = env["ENCRYPTION_KEY"]
        if env.get("TASKBOX_COMMAND_TIMEOUT"):
            values["command_timeout"] = float(env["TASKBOX_COMMAND_TIMEOUT"])
        return cls.model_validate(values)

    @property
    def credentials_dir(self) -> Path:
        return self.credentials_path or self.sandbox_path / "credentials"

    @property
    def uses_default_key(self) -> bool:
        return self.encryption_key == DEFAULT_ENCRYPTION_KEY

    @cached_property
    def key(self) -> bytes:
        """The AES key, derived once per settings object."""
        if self.uses_default_key:
            warnings.warn(_INSECURE_KEY_MSG, stacklevel=2)
            logger.warning(_INSECURE_KEY_MSG)
        return derive_key(self.encryption_key)
