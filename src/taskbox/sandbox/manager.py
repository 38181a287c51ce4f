"""SandboxManager — creates, tracks and disposes of sandboxes.

Each manager owns its root directory, its sandbox table, one shared
:class:`~taskbox.credentials.store.CredentialStore`, and one
:class:`~taskbox.events.EventBus` on which every sandbox's shell and
browser events are published.  Nothing is process-global: several managers
can coexist (tests build one per ``tmp_path``).
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from taskbox.config import Settings
from taskbox.credentials.store import CredentialStore
from taskbox.errors import BrowserError, SandboxError, SandboxExistsError
from taskbox.events import EventBus
from taskbox.sandbox.sandbox import BROWSER_DATA_DIR, Sandbox

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskbox.events import EventHandler

logger = logging.getLogger(__name__)

ROOT_DIRS = ("home", "tmp", "var", "shared", "credentials")
HOME_DIRS = ("documents", "downloads", "projects", "temp", BROWSER_DATA_DIR)
WELCOME_FILE = "welcome.txt"


class SandboxManager:
    """Registry of live sandboxes under one storage root.

    Usage::

        async with SandboxManager(Settings.from_env()) as manager:
            sandbox = manager.create_sandbox("build-42")
            result = await sandbox.execute_command("ls")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        credentials: CredentialStore | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._root = self._settings.sandbox_path
        self._sandboxes: dict[str, Sandbox] = {}
        self._events = events or EventBus()

        try:
            for name in ROOT_DIRS:
                (self._root / name).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SandboxError(f"cannot initialise sandbox root {self._root}: {exc}") from exc

        self._credentials = credentials or CredentialStore(
            self._settings.credentials_dir, key=self._settings.key
        )
        logger.info("Sandbox environment initialised at %s", self._root)

    async def __aenter__(self) -> SandboxManager:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def root_path(self) -> Path:
        return self._root

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def events(self) -> EventBus:
        return self._events

    # ------------------------------------------------------------------
    # Sandbox table
    # ------------------------------------------------------------------

    def create_sandbox(self, name: str | None = None) -> Sandbox:
        """Create, seed and register a sandbox.

        Raises:
            SandboxExistsError: If *name* is already a live sandbox.
            SandboxError: If the home directory cannot be created.
        """
        sandbox_id = name or f"sandbox-{uuid.uuid4().hex[:8]}"
        if sandbox_id in self._sandboxes:
            raise SandboxExistsError(sandbox_id)
        if Path(sandbox_id).name != sandbox_id or sandbox_id in (".", ".."):
            raise SandboxError(f"invalid sandbox id: {sandbox_id!r}")

        home = self._root / "home" / sandbox_id
        try:
            for sub in HOME_DIRS:
                (home / sub).mkdir(parents=True, exist_ok=True)
            (home / WELCOME_FILE).write_text(
                f"Welcome to taskbox sandbox (ID: {sandbox_id})\n"
                f"Created at: {datetime.now(timezone.utc).isoformat()}\n"
                "Run commands, edit files and browse the web from this directory.\n",
                encoding="utf-8",
            )
        except OSError as exc:
            raise SandboxError(f"cannot create sandbox {sandbox_id}: {exc}") from exc

        sandbox = Sandbox(
            sandbox_id,
            home,
            self._events,
            self._credentials,
            command_timeout=self._settings.command_timeout,
            user_agent=self._settings.user_agent,
            max_redirects=self._settings.max_redirects,
        )
        self._sandboxes[sandbox_id] = sandbox
        logger.info("Created sandbox %s at %s", sandbox_id, home)
        return sandbox

    def get_sandbox(self, sandbox_id: str) -> Sandbox | None:
        return self._sandboxes.get(sandbox_id)

    async def delete_sandbox(self, sandbox_id: str) -> bool:
        """Terminate a sandbox's sessions and unregister it.

        Files on disk are kept.  Returns ``False`` for an unknown id.  A
        browser session that fails to close is logged; the sandbox is still
        deleted.
        """
        sandbox = self._sandboxes.pop(sandbox_id, None)
        if sandbox is None:
            return False
        try:
            await sandbox.terminate_all_sessions()
        except BrowserError as exc:
            logger.warning("Sandbox %s: browser session did not close cleanly: %s", sandbox_id, exc)
        logger.info("Deleted sandbox %s", sandbox_id)
        return True

    def list_sandboxes(self) -> list[Sandbox]:
        return list(self._sandboxes.values())

    async def shutdown(self) -> None:
        """Delete every live sandbox."""
        for sandbox_id in list(self._sandboxes):
            await self.delete_sandbox(sandbox_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """Listen to *event_name* (or a glob such as ``shell:*``) across all sandboxes."""
        return self._events.subscribe(event_name, handler)
