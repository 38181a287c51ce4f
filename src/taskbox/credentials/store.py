"""CredentialStore — encrypted-at-rest map of website domain to login.

The whole map lives in one file (``credentials.enc``) written as a single
AES-CBC envelope (see :mod:`taskbox.credentials.crypto`).  Every mutation
re-encrypts and rewrites the file.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from taskbox.credentials.crypto import decrypt, encrypt
from taskbox.credentials.models import Credential
from taskbox.errors import CredentialStoreError

logger = logging.getLogger(__name__)

CREDENTIALS_FILE = "credentials.enc"


def normalize_domain(website: str) -> str:
    """Reduce a website or URL to its lower-cased host name.

    ``https://`` is assumed when no scheme is given.  Input that does not
    parse to a host is returned unchanged.
    """
    candidate = website.strip()
    if not candidate.startswith(("http://", "https://")):
        candidate = "https://" + candidate
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return website
    return host or website


class CredentialStore:
    """Encrypted credential map shared by every sandbox of a manager.

    Usage::

        store = CredentialStore(Path("sandbox/credentials"), key=settings.key)
        store.store("https://example.com/login", "alice", "secret")
        store.get("example.com")  # -> Credential(username='alice', ...)
    """

    def __init__(self, directory: Path, key: bytes) -> None:
        self._dir = Path(directory)
        self._key = key
        self._credentials: dict[str, Credential] = {}
        self._load_failed = False
        self._lock = threading.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._dir / CREDENTIALS_FILE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def store(self, domain: str, username: str, password: str) -> bool:
        """Upsert the credential for *domain* and persist the whole map.

        Raises:
            CredentialStoreError: If the map cannot be written, or the existing
                file could not be read and would be overwritten.
        """
        key = normalize_domain(domain)
        with self._lock:
            self._ensure_loaded()
            updated = {**self._credentials, key: Credential(username=username, password=password)}
            self._save(updated)
            self._credentials = updated
        logger.info("Stored credentials for %s", key)
        return True

    def get(self, domain: str) -> Credential | None:
        return self._credentials.get(normalize_domain(domain))

    def delete(self, domain: str) -> bool:
        """Remove the credential for *domain*; ``False`` if there was none."""
        key = normalize_domain(domain)
        with self._lock:
            self._ensure_loaded()
            if key not in self._credentials:
                return False
            updated = {d: c for d, c in self._credentials.items() if d != key}
            self._save(updated)
            self._credentials = updated
        logger.info("Deleted credentials for %s", key)
        return True

    def list(self) -> list[str]:
        return list(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and normalize_domain(domain) in self._credentials

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Read the encrypted map.

        A missing or empty file is an empty store.  A file that exists but
        cannot be read leaves the store empty and blocks every save until a
        later read succeeds.  A file that reads but does not decrypt or parse
        is logged, copied aside so the next save cannot destroy it, and the
        store starts empty.
        """
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._load_failed = False
                return
            raw_bytes = self.path.read_bytes()
        except OSError as exc:
            logger.error("Cannot read credential file %s: %s; saving is disabled", self.path, exc)
            self._load_failed = True
            return

        self._load_failed = False
        if not raw_bytes.strip():
            return

        try:
            raw = json.loads(decrypt(raw_bytes.decode("utf-8"), self._key))
            if not isinstance(raw, dict):
                raise CredentialStoreError("credential payload is not a JSON object")
            self._credentials = {
                domain: Credential.model_validate(entry) for domain, entry in raw.items()
            }
        except (CredentialStoreError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            backup = self._quarantine()
            logger.error(
                "Credential file %s is unreadable (%s); starting empty, original kept at %s",
                self.path,
                exc,
                backup,
            )
            self._credentials = {}
            if backup is None:
                self._load_failed = True
            return

        logger.info("Loaded %d website credentials", len(self._credentials))

    def _ensure_loaded(self) -> None:
        if self._load_failed:
            self._load()
        if self._load_failed:
            raise CredentialStoreError(f"refusing to overwrite unreadable credential file {self.path}")

    def _quarantine(self) -> Path | None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        backup = self.path.with_name(f"{CREDENTIALS_FILE}.corrupt-{stamp}")
        try:
            shutil.copy2(self.path, backup)
        except OSError as exc:
            logger.error("Cannot copy unreadable credential file aside: %s", exc)
            return None
        return backup

    def _save(self, credentials: dict[str, Credential]) -> None:
        """Encrypt *credentials* and atomically replace the credential file."""
        payload = json.dumps({domain: cred.model_dump() for domain, cred in credentials.items()})
        envelope = encrypt(payload, self._key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".credentials-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(envelope)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CredentialStoreError(f"cannot write {self.path}: {exc}") from exc
