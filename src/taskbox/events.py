"""Sandbox event channel — one multiplexed pub/sub bus per manager.

Shell and browser sessions publish :class:`SandboxEvent` objects tagged with
the owning sandbox id (and the session id where there is one).  Consumers
subscribe by event name or by glob pattern::

    unsubscribe = bus.subscribe("shell:*", on_shell_event)
    queue = bus.queue("browser:navigated")

Delivery is synchronous and in publish order, so events from a single
session reach every handler in the order their chunks arrived.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SHELL_CREATED = "shell:created"
SHELL_OUTPUT = "shell:output"
SHELL_ERROR = "shell:error"
SHELL_CLOSED = "shell:closed"
BROWSER_CREATED = "browser:created"
BROWSER_NAVIGATED = "browser:navigated"
BROWSER_FORM_SUBMITTED = "browser:form-submitted"
BROWSER_ERROR = "browser:error"
BROWSER_LOGIN = "browser:login"
BROWSER_CLOSED = "browser:closed"
BROWSER_FILE_DOWNLOADED = "browser:file-downloaded"

EventHandler = Callable[["SandboxEvent"], Any]


@dataclass
class SandboxEvent:
    """A notification published by a shell or browser session."""

    name: str
    sandbox_id: str
    session_id: str | None = None
    payload: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Convert a glob-style event pattern (``shell:*``, ``*``) to a regex."""
    escaped = re.escape(pattern).replace(r"\*", ".*")
    return re.compile(f"^{escaped}$")


class EventBus:
    """Synchronous fan-out bus with name and glob subscriptions."""

    def __init__(self) -> None:
        self._handlers: list[tuple[str, re.Pattern[str], EventHandler]] = []

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* for *event_name* and return an unsubscribe callable."""
        entry = (event_name, _glob_to_regex(event_name), handler)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    def queue(self, event_name: str = "*") -> asyncio.Queue[SandboxEvent]:
        """Return a queue that receives every matching event from now on."""
        q: asyncio.Queue[SandboxEvent] = asyncio.Queue()
        self.subscribe(event_name, q.put_nowait)
        return q

    def emit(self, event: SandboxEvent) -> None:
        """Deliver *event* to every matching handler.

        A failing handler is logged and skipped; it never interrupts the
        publisher (typically a process reader task).
        """
        for _name, pattern, handler in list(self._handlers):
            if not pattern.match(event.name):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.name)

    def publish(
        self,
        name: str,
        sandbox_id: str,
        session_id: str | None = None,
        **payload: Any,
    ) -> SandboxEvent:
        """Build a :class:`SandboxEvent` and emit it."""
        event = SandboxEvent(name=name, sandbox_id=sandbox_id, session_id=session_id, payload=payload)
        self.emit(event)
        return event
