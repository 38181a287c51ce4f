"""Tests for CredentialStore."""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from taskbox.credentials.crypto import derive_key, encrypt
from taskbox.credentials.models import Credential
from taskbox.credentials.store import CREDENTIALS_FILE, CredentialStore, normalize_domain
from taskbox.errors import CredentialStoreError

KEY = derive_key("store-tests")


class TestNormalizeDomain:
    @pytest.mark.parametrize(
        ("website", "expected"),
        [
            ("example.com", "example.com"),
            ("https://Example.COM/login?next=/", "example.com"),
            ("http://sub.example.com:8080/path", "sub.example.com"),
            ("  example.org  ", "example.org"),
        ],
    )
    def test_normalizes(self, website: str, expected: str) -> None:
        assert normalize_domain(website) == expected

    def test_unparseable_returned_unchanged(self) -> None:
        assert normalize_domain("") == ""


class TestStoreAndGet:
    def test_store_then_get(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)

        assert store.store("https://example.com/login", "alice", "s3cret") is True

        cred = store.get("example.com")
        assert cred == Credential(username="alice", password="s3cret")
        assert "example.com" in store
        assert len(store) == 1

    def test_get_unknown(self, tmp_path: Path) -> None:
        assert CredentialStore(tmp_path, KEY).get("nowhere.test") is None

    def test_store_overwrites(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)
        store.store("example.com", "alice", "one")
        store.store("example.com", "bob", "two")

        cred = store.get("example.com")
        assert cred is not None
        assert cred.username == "bob"
        assert store.list() == ["example.com"]

    def test_password_not_in_repr(self) -> None:
        assert "s3cret" not in repr(Credential(username="alice", password="s3cret"))


class TestPersistence:
    def test_file_is_encrypted(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)
        store.store("example.com", "alice", "s3cret")

        raw = (tmp_path / CREDENTIALS_FILE).read_text(encoding="utf-8")
        assert "alice" not in raw
        assert "s3cret" not in raw
        assert ":" in raw

    def test_file_mode(self, tmp_path: Path) -> None:
        CredentialStore(tmp_path, KEY).store("example.com", "alice", "s3cret")
        mode = stat.S_IMODE((tmp_path / CREDENTIALS_FILE).stat().st_mode)
        assert mode == 0o600

    def test_reload_with_same_key(self, tmp_path: Path) -> None:
        CredentialStore(tmp_path, KEY).store("example.com", "alice", "s3cret")

        reloaded = CredentialStore(tmp_path, KEY)

        cred = reloaded.get("example.com")
        assert cred is not None
        assert cred.password == "s3cret"

    def test_missing_directory_is_created(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "creds"
        store = CredentialStore(target, KEY)
        assert target.is_dir()
        assert len(store) == 0

    def test_empty_file_is_empty_store(self, tmp_path: Path) -> None:
        (tmp_path / CREDENTIALS_FILE).write_text("", encoding="utf-8")
        assert CredentialStore(tmp_path, KEY).list() == []


class TestCorruptFile:
    def test_wrong_key_quarantines_file(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        CredentialStore(tmp_path, KEY).store("example.com", "alice", "s3cret")
        original = (tmp_path / CREDENTIALS_FILE).read_text(encoding="utf-8")

        with caplog.at_level(logging.ERROR, logger="taskbox.credentials.store"):
            store = CredentialStore(tmp_path, derive_key("wrong"))

        assert store.list() == []
        assert "unreadable" in caplog.text
        backups = list(tmp_path.glob(f"{CREDENTIALS_FILE}.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == original

    def test_garbage_file(self, tmp_path: Path) -> None:
        (tmp_path / CREDENTIALS_FILE).write_text("not an envelope", encoding="utf-8")
        store = CredentialStore(tmp_path, KEY)
        assert len(store) == 0

    def test_non_object_payload(self, tmp_path: Path) -> None:
        (tmp_path / CREDENTIALS_FILE).write_text(encrypt("[1, 2]", KEY), encoding="utf-8")
        assert len(CredentialStore(tmp_path, KEY)) == 0

    def test_store_still_works_after_corruption(self, tmp_path: Path) -> None:
        (tmp_path / CREDENTIALS_FILE).write_text("junk", encoding="utf-8")
        store = CredentialStore(tmp_path, KEY)
        store.store("example.com", "alice", "pw")

        assert CredentialStore(tmp_path, KEY).get("example.com") is not None

    def test_binary_file_quarantined(self, tmp_path: Path) -> None:
        (tmp_path / CREDENTIALS_FILE).write_bytes(b"\xff\xfe\x00garbage")
        store = CredentialStore(tmp_path, KEY)

        assert len(store) == 0
        backups = list(tmp_path.glob(f"{CREDENTIALS_FILE}.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_bytes() == b"\xff\xfe\x00garbage"


class TestUnreadableFile:
    def test_store_refuses_to_overwrite(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        CredentialStore(tmp_path, KEY).store("example.com", "alice", "pw")
        original = (tmp_path / CREDENTIALS_FILE).read_text(encoding="utf-8")

        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            with caplog.at_level(logging.ERROR, logger="taskbox.credentials.store"):
                store = CredentialStore(tmp_path, KEY)
            assert store.list() == []
            with pytest.raises(CredentialStoreError, match="refusing to overwrite"):
                store.store("example.org", "bob", "pw")

        assert "Cannot read credential file" in caplog.text
        assert (tmp_path / CREDENTIALS_FILE).read_text(encoding="utf-8") == original
        assert store.get("example.org") is None

    def test_store_recovers_once_file_is_readable(self, tmp_path: Path) -> None:
        CredentialStore(tmp_path, KEY).store("example.com", "alice", "pw")

        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            store = CredentialStore(tmp_path, KEY)
        store.store("example.org", "bob", "pw")

        assert CredentialStore(tmp_path, KEY).list() == ["example.com", "example.org"]


class TestFailedSave:
    def test_failed_store_leaves_memory_unchanged(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)
        (tmp_path / CREDENTIALS_FILE).mkdir()

        with pytest.raises(CredentialStoreError, match="cannot write"):
            store.store("example.com", "alice", "pw")

        assert store.get("example.com") is None
        assert store.list() == []

    def test_failed_delete_keeps_credential(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)
        store.store("example.com", "alice", "pw")
        (tmp_path / CREDENTIALS_FILE).unlink()
        (tmp_path / CREDENTIALS_FILE).mkdir()

        with pytest.raises(CredentialStoreError):
            store.delete("example.com")

        assert store.get("example.com") == Credential(username="alice", password="pw")
        assert list(tmp_path.glob(".credentials-*.tmp")) == []


class TestDeleteAndList:
    def test_delete(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path, KEY)
        store.store("example.com", "alice", "pw")
        store.store("example.org", "bob", "pw")

        assert store.delete("https://example.com") is True
        assert store.delete("example.com") is False
        assert store.list() == ["example.org"]
        assert CredentialStore(tmp_path, KEY).list() == ["example.org"]
