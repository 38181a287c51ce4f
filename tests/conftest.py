"""Shared fixtures: isolated settings and a manager rooted in ``tmp_path``."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from taskbox.config import Settings
from taskbox.sandbox.manager import SandboxManager

TEST_KEY = "test-encryption-key"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        sandbox_path=tmp_path / "sandbox",
        encryption_key=TEST_KEY,
        command_timeout=10.0,
    )


@pytest.fixture
async def manager(settings: Settings) -> AsyncIterator[SandboxManager]:
    mgr = SandboxManager(settings)
    yield mgr
    await mgr.shutdown()
