"""Per-domain cookie jar for browser sessions.

Cookies are stored as ``domain -> {name: value}``.  A request to a host is
sent the cookies stored under the exact host plus those stored under every
parent suffix that already has an entry in the jar (``a.b.example.com``
picks up ``b.example.com`` and ``example.com`` but never the bare ``com``).
No public-suffix list is consulted, so two unrelated sites under a shared
multi-label suffix can see each other's cookies if the suffix itself was
ever used as a request host.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def candidate_domains(host: str) -> list[str]:
    """Return *host* followed by its parent suffixes, excluding the TLD."""
    labels = host.lower().split(".")
    return [".".join(labels[i:]) for i in range(max(len(labels) - 1, 1))]


def parse_set_cookie(header: str) -> tuple[str, str] | None:
    """Extract ``(name, value)`` from a ``Set-Cookie`` header value.

    Attributes after the first ``;`` are ignored.  Headers without ``=``
    yield ``None``.
    """
    pair = header.split(";", 1)[0]
    name, sep, value = pair.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip()


class CookieJar:
    """Mutable ``domain -> {name: value}`` map with suffix lookup."""

    def __init__(self, data: dict[str, dict[str, str]] | None = None) -> None:
        self._domains: dict[str, dict[str, str]] = {
            domain.lower(): dict(cookies) for domain, cookies in (data or {}).items()
        }

    def set(self, domain: str, name: str, value: str) -> None:
        self._domains.setdefault(domain.lower(), {})[name] = value

    def store_headers(self, domain: str, headers: Iterable[str]) -> int:
        """Record every parseable ``Set-Cookie`` header under *domain*."""
        stored = 0
        for header in headers:
            parsed = parse_set_cookie(header)
            if parsed is None:
                continue
            self.set(domain, *parsed)
            stored += 1
        return stored

    def cookies_for(self, host: str) -> dict[str, str]:
        """Union of cookies applicable to *host*; the most specific domain wins."""
        merged: dict[str, str] = {}
        for domain in reversed(candidate_domains(host)):
            merged.update(self._domains.get(domain, {}))
        return merged

    def header_for(self, host: str) -> str | None:
        cookies = self.cookies_for(host)
        if not cookies:
            return None
        return "; ".join(f"{name}={value}" for name, value in cookies.items())

    def domains(self) -> list[str]:
        return list(self._domains)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {domain: dict(cookies) for domain, cookies in self._domains.items()}

    def __len__(self) -> int:
        return sum(len(c) for c in self._domains.values())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> CookieJar:
        """Read a jar written by :meth:`save`; unreadable files give an empty jar."""
        if not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cookie file %s: %s", path, exc)
            return cls()
        if not isinstance(raw, dict):
            logger.warning("Ignoring cookie file %s: not a JSON object", path)
            return cls()
        return cls({
            str(domain): {str(k): str(v) for k, v in cookies.items()}
            for domain, cookies in raw.items()
            if isinstance(cookies, dict)
        })
