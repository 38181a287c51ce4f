"""Tests for ShellSession against a real bash process."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from taskbox.errors import SessionNotActiveError
from taskbox.events import SHELL_CLOSED, SHELL_CREATED, SHELL_ERROR, SHELL_OUTPUT, EventBus, SandboxEvent
from taskbox.shell.session import ShellSession


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def session(tmp_path: Path, bus: EventBus) -> AsyncIterator[ShellSession]:
    shell = await ShellSession.spawn(tmp_path, bus, "sb-test")
    yield shell
    shell.terminate()
    await shell.wait_closed(timeout=5)


class TestSpawn:
    async def test_publishes_created(self, tmp_path: Path, bus: EventBus) -> None:
        received: list[SandboxEvent] = []
        bus.subscribe(SHELL_CREATED, received.append)

        shell = await ShellSession.spawn(tmp_path, bus, "sb-test")
        try:
            assert shell.is_active()
            assert received[0].session_id == shell.id
            assert received[0].payload["pid"] == shell.pid
        finally:
            shell.terminate()
            await shell.wait_closed(timeout=5)

    async def test_home_is_cwd(self, session: ShellSession, tmp_path: Path) -> None:
        await session.write('echo "home=$HOME"\n')
        match = await session.wait_for_output(re.escape(f"home={tmp_path}\n"), timeout=5)
        assert match is not None


class TestOutput:
    async def test_echo(self, session: ShellSession) -> None:
        await session.write("echo hello\n")
        match = await session.wait_for_output("hello\n", timeout=5)
        assert match is not None
        assert "hello" in session.get_output()

    async def test_stderr_is_captured(self, session: ShellSession, bus: EventBus) -> None:
        errors: list[SandboxEvent] = []
        bus.subscribe(SHELL_ERROR, errors.append)

        await session.write("echo oops >&2\n")
        await session.wait_for_output("oops", timeout=5)

        assert any("oops" in e.payload["output"] for e in errors)

    async def test_output_events_carry_ids(self, session: ShellSession, bus: EventBus) -> None:
        queue = bus.queue(SHELL_OUTPUT)

        await session.write("echo evt\n")
        await session.wait_for_output("evt", timeout=5)

        event = queue.get_nowait()
        assert event.sandbox_id == "sb-test"
        assert event.session_id == session.id

    async def test_clear_output(self, session: ShellSession) -> None:
        await session.write("echo first\n")
        await session.wait_for_output("first", timeout=5)

        session.clear_output()
        await session.write("echo second\n")
        await session.wait_for_output("second", timeout=5)

        assert "first" not in session.get_output()

    async def test_wait_for_output_times_out(self, session: ShellSession) -> None:
        with pytest.raises(TimeoutError):
            await session.wait_for_output("never-printed", timeout=0.2)


class TestLifecycle:
    async def test_exit_closes_session(self, session: ShellSession, bus: EventBus) -> None:
        closed: list[SandboxEvent] = []
        bus.subscribe(SHELL_CLOSED, closed.append)

        await session.write("exit 3\n")
        code = await session.wait_closed(timeout=5)

        assert code == 3
        assert not session.is_active()
        assert closed[0].payload["code"] == 3

    async def test_wait_for_output_returns_none_after_close(self, session: ShellSession) -> None:
        await session.write("exit 0\n")
        assert await session.wait_for_output("never-printed", timeout=5) is None

    async def test_write_after_terminate_raises(self, session: ShellSession) -> None:
        session.terminate()
        with pytest.raises(SessionNotActiveError):
            await session.write("echo nope\n")

    async def test_terminate_is_idempotent(self, session: ShellSession) -> None:
        session.terminate()
        session.terminate()
        await session.wait_closed(timeout=5)
        assert not session.is_active()

    async def test_terminate_kills_children(self, session: ShellSession) -> None:
        await session.write("sleep 30 &\necho started\n")
        await session.wait_for_output("started", timeout=5)

        session.terminate()

        await session.wait_closed(timeout=5)
        assert session.returncode is not None
