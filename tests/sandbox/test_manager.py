"""Tests for SandboxManager."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from taskbox.browser.cookies import CookieJar
from taskbox.config import Settings
from taskbox.errors import SandboxError, SandboxExistsError
from taskbox.events import SHELL_CREATED, SandboxEvent
from taskbox.sandbox.manager import HOME_DIRS, ROOT_DIRS, WELCOME_FILE, SandboxManager


class TestInit:
    async def test_creates_root_layout(self, manager: SandboxManager, settings: Settings) -> None:
        for name in ROOT_DIRS:
            assert (settings.sandbox_path / name).is_dir()
        assert manager.root_path == settings.sandbox_path
        assert manager.credentials.path.parent == settings.sandbox_path / "credentials"

    async def test_unusable_root_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(SandboxError, match="cannot initialise"):
            SandboxManager(Settings(sandbox_path=blocker, encryption_key="k"))

    async def test_context_manager_shuts_down(self, settings: Settings) -> None:
        async with SandboxManager(settings) as mgr:
            sandbox = mgr.create_sandbox("ctx")
            session = await sandbox.create_shell_session()
        assert mgr.list_sandboxes() == []
        assert not session.is_active()


class TestCreateSandbox:
    async def test_seeds_home(self, manager: SandboxManager, settings: Settings) -> None:
        sandbox = manager.create_sandbox("alpha")

        home = settings.sandbox_path / "home" / "alpha"
        assert sandbox.home_path == home
        for sub in HOME_DIRS:
            assert (home / sub).is_dir()
        welcome = (home / WELCOME_FILE).read_text(encoding="utf-8")
        assert "alpha" in welcome
        assert "Created at:" in welcome

    async def test_generated_id(self, manager: SandboxManager) -> None:
        sandbox = manager.create_sandbox()
        assert sandbox.id.startswith("sandbox-")
        assert len(sandbox.id) == len("sandbox-") + 8

    async def test_get_before_and_after_create(self, manager: SandboxManager) -> None:
        assert manager.get_sandbox("beta") is None
        sandbox = manager.create_sandbox("beta")
        assert manager.get_sandbox("beta") is sandbox

    async def test_duplicate_live_id_rejected(self, manager: SandboxManager) -> None:
        manager.create_sandbox("dup")
        with pytest.raises(SandboxExistsError):
            manager.create_sandbox("dup")

    @pytest.mark.parametrize("bad_id", ["../escape", "a/b", ".", ".."])
    async def test_invalid_id_rejected(self, manager: SandboxManager, bad_id: str) -> None:
        with pytest.raises(SandboxError, match="invalid sandbox id"):
            manager.create_sandbox(bad_id)

    async def test_recreate_after_delete_keeps_files(self, manager: SandboxManager) -> None:
        first = manager.create_sandbox("again")
        first.write_file("notes.txt", "keep me")
        await manager.delete_sandbox("again")

        second = manager.create_sandbox("again")

        assert second is not first
        assert second.read_file("notes.txt") == "keep me"

    async def test_sandboxes_share_credentials(self, manager: SandboxManager) -> None:
        one = manager.create_sandbox("one")
        two = manager.create_sandbox("two")

        one.store_credentials("example.com", "alice", "pw")

        assert two.get_credentials("example.com") is not None


class TestDeleteSandbox:
    async def test_terminates_sessions(self, manager: SandboxManager) -> None:
        sandbox = manager.create_sandbox("gamma")
        first = await sandbox.create_shell_session()
        second = await sandbox.create_shell_session()

        assert await manager.delete_sandbox("gamma") is True

        assert not first.is_active()
        assert not second.is_active()
        assert manager.get_sandbox("gamma") is None
        assert all(s.id != "gamma" for s in manager.list_sandboxes())
        assert sandbox.home_path.is_dir()
        await first.wait_closed(timeout=5)
        await second.wait_closed(timeout=5)

    async def test_browser_close_failure_still_deletes(self, manager: SandboxManager) -> None:
        sandbox = manager.create_sandbox("delta")
        browser = await sandbox.create_browser_session(
            transport=httpx.MockTransport(lambda _r: httpx.Response(200))
        )

        with patch.object(CookieJar, "save", side_effect=OSError("disk full")):
            assert await manager.delete_sandbox("delta") is True

        assert not browser.is_active()
        assert manager.get_sandbox("delta") is None
        assert sandbox.get_browser_session() is None

    async def test_unknown_id(self, manager: SandboxManager) -> None:
        assert await manager.delete_sandbox("missing") is False

    async def test_shutdown_deletes_all(self, manager: SandboxManager) -> None:
        manager.create_sandbox("a")
        manager.create_sandbox("b")
        await manager.shutdown()
        assert manager.list_sandboxes() == []


class TestSubscribe:
    async def test_events_tagged_with_sandbox(self, manager: SandboxManager) -> None:
        received: list[SandboxEvent] = []
        unsubscribe = manager.subscribe(SHELL_CREATED, received.append)

        sandbox = manager.create_sandbox("delta")
        session = await sandbox.create_shell_session()
        unsubscribe()
        await sandbox.create_shell_session()

        assert len(received) == 1
        assert received[0].sandbox_id == "delta"
        assert received[0].session_id == session.id
