"""Sandbox — a private home directory plus its live shell and browser sessions.

Separation is logical only: every file path is confined to ``home_path``
and shells run in their own process groups, but there is no kernel-level
isolation.
"""

from __future__ import annotations

import contextlib
import logging
import re
import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taskbox.browser.models import AuthenticatedActionResult, AuthenticationResult
from taskbox.browser.session import BrowserSession
from taskbox.config import DEFAULT_USER_AGENT
from taskbox.errors import (
    BrowserError,
    SandboxFileError,
    SandboxPathError,
    SandboxTimeoutError,
)
from taskbox.sandbox.models import CommandResult, FileInfo
from taskbox.shell.session import ShellSession
from taskbox.utils.telemetry import (
    ATTR_COMMAND,
    ATTR_EXIT_CODE,
    ATTR_SANDBOX_ID,
    ATTR_SESSION_ID,
    ATTR_TIMED_OUT,
    get_tracer,
)

if TYPE_CHECKING:
    import httpx

    from taskbox.credentials.models import Credential
    from taskbox.credentials.store import CredentialStore
    from taskbox.events import EventBus

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

BROWSER_DATA_DIR = "browser_data"
_REAP_TIMEOUT = 5.0


class Sandbox:
    """One isolated work environment.

    Owns its shell sessions and at most one browser session; borrows the
    manager's credential store.  Instances are created by
    :meth:`~taskbox.sandbox.manager.SandboxManager.create_sandbox`.
    """

    def __init__(
        self,
        sandbox_id: str,
        home_path: Path,
        events: EventBus,
        credentials: CredentialStore,
        *,
        command_timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_redirects: int = 5,
    ) -> None:
        self.id = sandbox_id
        self.home_path = Path(home_path)
        self.credentials = credentials
        self._root = self.home_path.resolve()
        self._events = events
        self._command_timeout = command_timeout
        self._user_agent = user_agent
        self._max_redirects = max_redirects
        self._shells: dict[str, ShellSession] = {}
        self._browser: BrowserSession | None = None

    def __repr__(self) -> str:
        return f"Sandbox(id={self.id!r}, home_path={str(self.home_path)!r})"

    # ------------------------------------------------------------------
    # Shell sessions
    # ------------------------------------------------------------------

    async def create_shell_session(self) -> ShellSession:
        """Start a new ``bash`` rooted at the sandbox home."""
        session = await ShellSession.spawn(self._root, self._events, self.id)
        self._shells[session.id] = session
        return session

    def get_shell_session(self, session_id: str) -> ShellSession | None:
        return self._shells.get(session_id)

    def list_shell_sessions(self) -> list[ShellSession]:
        return list(self._shells.values())

    def terminate_shell_session(self, session_id: str) -> bool:
        """Kill and forget a session; ``False`` if the id is unknown."""
        session = self._shells.pop(session_id, None)
        if session is None:
            return False
        session.terminate()
        return True

    async def terminate_all_sessions(self) -> None:
        """Kill every shell session, reap the processes, and close the browser session."""
        sessions = list(self._shells.values())
        self._shells.clear()
        for session in sessions:
            session.terminate()
        for session in sessions:
            with contextlib.suppress(TimeoutError):
                await session.wait_closed(timeout=_REAP_TIMEOUT)
        if self._browser is not None:
            browser, self._browser = self._browser, None
            await browser.close()
        logger.debug("Sandbox %s: terminated %d shell session(s)", self.id, len(sessions))

    async def execute_command(
        self,
        command: str,
        cwd: str | None = None,
        *,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run *command* in a throwaway shell and return its output.

        Completion is detected by a unique marker printed after the command
        together with ``$?``, so the reported exit code is the command's own.
        If the shell exits before the marker appears (``exit 3``), the
        process return code is reported instead.

        Raises:
            SandboxPathError: If *cwd* escapes the sandbox home.
            SandboxFileError: If *cwd* is not an existing directory.
            SandboxTimeoutError: If the command does not finish in time.
        """
        effective_timeout = self._command_timeout if timeout is None else timeout
        workdir = self._resolve(cwd) if cwd else None
        if workdir is not None and not workdir.is_dir():
            raise SandboxFileError(f"Working directory does not exist: {cwd}")

        session = await self.create_shell_session()
        marker = f"__TASKBOX_DONE_{session.id}__"
        done = re.compile(rf"\n{marker}:(\d+)\n")

        with _tracer.start_as_current_span("sandbox.execute_command") as span:
            span.set_attribute(ATTR_SANDBOX_ID, self.id)
            span.set_attribute(ATTR_SESSION_ID, session.id)
            span.set_attribute(ATTR_COMMAND, command)
            try:
                if workdir is not None:
                    await session.write(f"cd {shlex.quote(str(workdir))}\n")
                await session.write(f"{command}\n")
                await session.write(f"printf '\\n{marker}:%s\\n' \"$?\"\n")
                match = await session.wait_for_output(done, timeout=effective_timeout)
            except TimeoutError:
                span.set_attribute(ATTR_TIMED_OUT, True)
                logger.warning("Sandbox %s: command timed out after %ss: %s", self.id, effective_timeout, command)
                raise SandboxTimeoutError(effective_timeout) from None
            finally:
                self.terminate_shell_session(session.id)
                with contextlib.suppress(TimeoutError):
                    await session.wait_closed(timeout=_REAP_TIMEOUT)

            if match is not None:
                output = session.output[: match.start()]
                exit_code: int | None = int(match.group(1))
            else:
                output = session.output
                exit_code = session.returncode
            if exit_code is not None:
                span.set_attribute(ATTR_EXIT_CODE, exit_code)

        return CommandResult(command=command, output=output, exit_code=exit_code)

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def _resolve(self, path: str | Path) -> Path:
        """Resolve *path* against the home directory, refusing escapes."""
        full = (self._root / path).resolve()
        if not full.is_relative_to(self._root):
            raise SandboxPathError(str(path))
        return full

    def read_file(self, path: str) -> str:
        full = self._resolve(path)
        try:
            return full.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SandboxFileError(f"Error reading file: {exc}") from exc

    def write_file(self, path: str, content: str, append: bool = False) -> None:
        """Write (or append) *content*, creating parent directories."""
        full = self._resolve(path)
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            with full.open("a" if append else "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as exc:
            raise SandboxFileError(f"Error writing file: {exc}") from exc

    def delete_file(self, path: str) -> None:
        full = self._resolve(path)
        try:
            full.unlink()
        except OSError as exc:
            raise SandboxFileError(f"Error deleting file: {exc}") from exc

    def list_files(self, path: str = ".") -> list[str]:
        full = self._resolve(path)
        try:
            return sorted(entry.name for entry in full.iterdir())
        except OSError as exc:
            raise SandboxFileError(f"Error listing files: {exc}") from exc

    def create_directory(self, path: str) -> None:
        full = self._resolve(path)
        try:
            full.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SandboxFileError(f"Error creating directory: {exc}") from exc

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def get_file_info(self, path: str) -> FileInfo:
        full = self._resolve(path)
        try:
            stats = full.stat()
        except OSError as exc:
            raise SandboxFileError(f"Error getting file info: {exc}") from exc

        def _ts(value: float) -> datetime:
            return datetime.fromtimestamp(value, tz=timezone.utc)

        return FileInfo(
            name=full.name,
            path=path,
            size=stats.st_size,
            is_directory=full.is_dir(),
            is_file=full.is_file(),
            created=_ts(getattr(stats, "st_birthtime", stats.st_ctime)),
            modified=_ts(stats.st_mtime),
            accessed=_ts(stats.st_atime),
        )

    # ------------------------------------------------------------------
    # Browser session
    # ------------------------------------------------------------------

    async def create_browser_session(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BrowserSession:
        """Open a browser session, closing any existing one first."""
        if self._browser is not None:
            previous, self._browser = self._browser, None
            await previous.close()
        self._browser = BrowserSession(
            self.id,
            self._root / BROWSER_DATA_DIR,
            self._events,
            self.credentials,
            user_agent=self._user_agent,
            max_redirects=self._max_redirects,
            transport=transport,
        )
        return self._browser

    def get_browser_session(self) -> BrowserSession | None:
        return self._browser

    async def close_browser_session(self) -> bool:
        if self._browser is None:
            return False
        browser, self._browser = self._browser, None
        await browser.close()
        return True

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def store_credentials(self, website: str, username: str, password: str) -> bool:
        return self.credentials.store(website, username, password)

    def get_credentials(self, website: str) -> Credential | None:
        return self.credentials.get(website)

    def delete_credentials(self, website: str) -> bool:
        return self.credentials.delete(website)

    def list_credentials(self) -> list[str]:
        return self.credentials.list()

    async def authenticate_with_website(
        self,
        website: str,
        username_field: str = "username",
        password_field: str = "password",
    ) -> AuthenticationResult:
        """Log in to *website* with stored credentials via the browser session.

        Opens a browser session if there is none.  Never raises for a
        missing credential or a failed request; the result says why.
        """
        if self.get_credentials(website) is None:
            return AuthenticationResult(success=False, error=f"No credentials found for {website}")

        browser = self._browser or await self.create_browser_session()
        url = website if "://" in website else f"https://{website}"
        try:
            response = await browser.login_to_website(url, username_field, password_field)
        except BrowserError as exc:
            return AuthenticationResult(success=False, error=str(exc))

        return AuthenticationResult(
            success=response.ok,
            url=response.url,
            status=response.status,
            error=response.error,
        )

    async def perform_authenticated_action(
        self,
        website: str,
        action: str,
        params: dict[str, Any],
    ) -> AuthenticatedActionResult:
        """Authenticate with *website*, then run ``navigate``, ``submit_form``
        or ``download_file`` with *params*."""
        auth = await self.authenticate_with_website(website)
        if not auth.success:
            return AuthenticatedActionResult(success=False, error=f"Authentication failed: {auth.error}")

        browser = self._browser
        assert browser is not None
        try:
            if action == "navigate":
                result: Any = (await browser.navigate_to(params["url"])).model_dump()
            elif action == "submit_form":
                response = await browser.submit_form(
                    params["url"],
                    params.get("form_data", {}),
                    params.get("method", "POST"),
                )
                result = response.model_dump()
            elif action == "download_file":
                path = await browser.download_file(params["url"], params["file_path"])
                result = {"file_path": str(path)}
            else:
                return AuthenticatedActionResult(success=False, error=f"Unknown action: {action}")
        except KeyError as exc:
            return AuthenticatedActionResult(success=False, error=f"Missing parameter for {action}: {exc}")
        except (BrowserError, ValueError) as exc:
            return AuthenticatedActionResult(success=False, error=str(exc))

        return AuthenticatedActionResult(success=True, result=result)
