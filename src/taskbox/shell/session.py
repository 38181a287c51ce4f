"""ShellSession — one interactive ``bash`` process owned by a sandbox.

The session is addressable by id so callers can write input and poll the
accumulated output while a long-running or interactive command is still
going.  Output chunks are published on the sandbox event bus as they
arrive (``shell:output`` for stdout, ``shell:error`` for stderr); there is
no line buffering.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import re
import signal
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from taskbox.errors import SessionNotActiveError, ShellSessionError
from taskbox.events import SHELL_CLOSED, SHELL_CREATED, SHELL_ERROR, SHELL_OUTPUT

if TYPE_CHECKING:
    from taskbox.events import EventBus

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_DRAIN_TIMEOUT = 2.0


class ShellSession:
    """Handle to a live shell process.

    State moves ``created -> active -> terminated`` and never back.  The
    session becomes inactive either through :meth:`terminate` or because the
    process exited on its own; afterwards :meth:`write` raises
    :class:`~taskbox.errors.SessionNotActiveError`.
    """

    def __init__(
        self,
        session_id: str,
        process: asyncio.subprocess.Process,
        events: EventBus,
        sandbox_id: str,
    ) -> None:
        self.id = session_id
        self.sandbox_id = sandbox_id
        self._process = process
        self._events = events
        self._output: list[str] = []
        self._active = True
        self._returncode: int | None = None
        self._changed = asyncio.Condition()
        self._closed = asyncio.Event()
        self._readers = [
            asyncio.create_task(self._pump(process.stdout, SHELL_OUTPUT)),
            asyncio.create_task(self._pump(process.stderr, SHELL_ERROR)),
        ]
        self._watcher = asyncio.create_task(self._watch())

    @classmethod
    async def spawn(
        cls,
        cwd: Path,
        events: EventBus,
        sandbox_id: str,
        *,
        env: dict[str, str] | None = None,
        shell: str = "bash",
    ) -> ShellSession:
        """Start *shell* in its own process group rooted at *cwd*."""
        session_id = uuid.uuid4().hex
        merged_env = {**os.environ, "HOME": str(cwd), **(env or {})}
        try:
            process = await asyncio.create_subprocess_exec(
                shell,
                cwd=str(cwd),
                env=merged_env,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise ShellSessionError(f"Failed to start {shell}: {exc}") from exc

        session = cls(session_id, process, events, sandbox_id)
        logger.debug("Shell session %s started (pid=%s) in %s", session_id, process.pid, cwd)
        events.publish(SHELL_CREATED, sandbox_id, session_id, pid=process.pid)
        return session

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._returncode

    @property
    def output(self) -> str:
        return "".join(self._output)

    def is_active(self) -> bool:
        return self._active

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    async def write(self, text: str) -> None:
        """Send *text* to the shell's stdin."""
        if not self._active or self._process.stdin is None:
            raise SessionNotActiveError(self.id)
        try:
            self._process.stdin.write(text.encode())
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            self._active = False
            raise SessionNotActiveError(self.id) from exc

    def get_output(self) -> str:
        """Return everything received since creation or the last clear."""
        return self.output

    def clear_output(self) -> None:
        self._output.clear()

    async def wait_for_output(self, pattern: str | re.Pattern[str], timeout: float | None = None) -> re.Match[str] | None:
        """Wait until *pattern* matches the buffered output.

        Returns the match, or ``None`` if the session closed first.

        Raises:
            TimeoutError: If *timeout* elapses before either happens.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern

        async def _wait() -> re.Match[str] | None:
            async with self._changed:
                while True:
                    match = regex.search(self.output)
                    if match is not None:
                        return match
                    if self._closed.is_set():
                        return None
                    await self._changed.wait()

        return await asyncio.wait_for(_wait(), timeout=timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def terminate(self) -> None:
        """Kill the shell and everything it started.  No-op when inactive."""
        if not self._active:
            return
        self._active = False
        try:
            os.killpg(self._process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            self._process.kill()
        logger.debug("Shell session %s terminated", self.id)

    async def wait_closed(self, timeout: float | None = None) -> int | None:
        """Wait for the process to exit and all output to be delivered."""
        await asyncio.wait_for(self._closed.wait(), timeout=timeout)
        return self._returncode

    async def _pump(self, stream: asyncio.StreamReader | None, event_name: str) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK)
            text = decoder.decode(chunk, final=not chunk)
            if not text:
                if not chunk:
                    return
                continue
            async with self._changed:
                self._output.append(text)
                self._changed.notify_all()
            self._events.publish(event_name, self.sandbox_id, self.id, output=text)

    async def _watch(self) -> None:
        self._returncode = await self._process.wait()
        # orphaned background jobs can hold the pipes open past shell exit
        _done, pending = await asyncio.wait(self._readers, timeout=_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()
        self._active = False
        if self._process.stdin is not None:
            self._process.stdin.close()
        async with self._changed:
            self._closed.set()
            self._changed.notify_all()
        logger.debug("Shell session %s closed (code=%s)", self.id, self._returncode)
        self._events.publish(SHELL_CLOSED, self.sandbox_id, self.id, code=self._returncode)
