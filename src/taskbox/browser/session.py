"""BrowserSession — stateful, cookie-aware HTTP client for one sandbox.

Not a real browser: pages are fetched and returned raw, nothing is
rendered or executed.  The session keeps its own :class:`CookieJar`
(persisted to ``<data_dir>/cookies.json``), follows a bounded number of
redirects, and can log in to websites with credentials taken from the
sandbox's :class:`~taskbox.credentials.store.CredentialStore`.

Navigation and form submission never raise on network failure; they return
a :class:`BrowserResponse` with ``error`` set.  :meth:`download_file` is the
exception because a missing file has no meaningful partial result.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from taskbox.browser.cookies import CookieJar
from taskbox.browser.models import BrowserResponse
from taskbox.config import DEFAULT_USER_AGENT
from taskbox.errors import BrowserError, BrowserNotActiveError, CredentialNotFoundError
from taskbox.events import (
    BROWSER_CLOSED,
    BROWSER_CREATED,
    BROWSER_ERROR,
    BROWSER_FILE_DOWNLOADED,
    BROWSER_FORM_SUBMITTED,
    BROWSER_LOGIN,
    BROWSER_NAVIGATED,
)
from taskbox.utils.telemetry import (
    ATTR_HTTP_METHOD,
    ATTR_HTTP_STATUS,
    ATTR_HTTP_URL,
    ATTR_SANDBOX_ID,
    get_tracer,
)

if TYPE_CHECKING:
    from taskbox.credentials.store import CredentialStore
    from taskbox.events import EventBus

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

COOKIES_FILE = "cookies.json"
_FAILED_STATUS = 500


def _host(url: str | httpx.URL) -> str:
    return httpx.URL(str(url)).host


class BrowserSession:
    """Cookie-aware pseudo-browser bound to a sandbox.

    Usage::

        browser = await sandbox.create_browser_session()
        page = await browser.navigate_to("https://example.com")
        await browser.login_to_website("https://example.com/login")
        await browser.close()
    """

    def __init__(
        self,
        session_id: str,
        data_dir: Path,
        events: EventBus,
        credentials: CredentialStore | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        max_redirects: int = 5,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.id = session_id
        self.data_dir = Path(data_dir)
        self.current_url = ""
        self._events = events
        self._credentials = credentials
        self._user_agent = user_agent
        self._max_redirects = max_redirects
        self._jar: CookieJar | None = None
        self._active = True

        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.cookies_path.exists():
            self.cookies_path.write_text("{}", encoding="utf-8")

        self._client = httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            transport=transport,
        )
        self._events.publish(BROWSER_CREATED, self.id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def cookies_path(self) -> Path:
        return self.data_dir / COOKIES_FILE

    @property
    def cookie_jar(self) -> CookieJar:
        """The jar, read from ``cookies.json`` the first time it is needed."""
        if self._jar is None:
            self._jar = CookieJar.load(self.cookies_path)
        return self._jar

    def is_active(self) -> bool:
        return self._active

    def _ensure_active(self) -> None:
        if not self._active:
            raise BrowserNotActiveError(self.id)

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    def _apply_cookies(self, request: httpx.Request) -> None:
        cookie = self.cookie_jar.header_for(request.url.host)
        if cookie:
            request.headers["Cookie"] = cookie
        else:
            request.headers.pop("Cookie", None)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        cookie_domain: str | None = None,
    ) -> httpx.Response:
        """Send a request and follow up to ``max_redirects`` redirects.

        Every hop gets its ``Cookie`` header from the jar, and each hop's
        ``Set-Cookie`` headers are stored before the next hop is sent, under
        *cookie_domain* or, when that is ``None``, under the hop's own host.

        Raises:
            httpx.TooManyRedirects: If the redirect chain is longer than allowed.
        """
        headers = self._headers()
        if data is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        request = self._client.build_request(method, url, headers=headers, params=params, data=data)

        for _hop in range(self._max_redirects + 1):
            self._apply_cookies(request)
            # cookies are tracked in our own jar, not httpx's
            self._client.cookies.clear()
            logger.debug("%s %s", request.method, request.url)
            response = await self._client.send(request, follow_redirects=False)
            self.cookie_jar.store_headers(
                cookie_domain or request.url.host,
                response.headers.get_list("set-cookie"),
            )
            if response.next_request is None:
                return response
            request = response.next_request

        msg = f"Exceeded maximum allowed redirects ({self._max_redirects})"
        raise httpx.TooManyRedirects(msg, request=request)

    @staticmethod
    def _to_response(url: str, response: httpx.Response) -> BrowserResponse:
        error = None
        if not response.is_success:
            error = f"Request failed with status code {response.status_code}"
        return BrowserResponse(
            url=url,
            status=response.status_code,
            content=response.text,
            headers=dict(response.headers),
            error=error,
        )

    def _failed(self, url: str, exc: Exception, **extra: object) -> BrowserResponse:
        logger.warning("Browser %s request to %s failed: %s", self.id, url, exc)
        self._events.publish(BROWSER_ERROR, self.id, url=url, error=str(exc), **extra)
        return BrowserResponse(url=url, status=_FAILED_STATUS, error=str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def navigate_to(self, url: str) -> BrowserResponse:
        """GET *url*, recording cookies under the requested host."""
        self._ensure_active()
        self.current_url = url
        with _tracer.start_as_current_span("browser.navigate") as span:
            span.set_attribute(ATTR_SANDBOX_ID, self.id)
            span.set_attribute(ATTR_HTTP_METHOD, "GET")
            span.set_attribute(ATTR_HTTP_URL, url)
            try:
                response = await self._request("GET", url, cookie_domain=_host(url))
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                return self._failed(url, exc)

            span.set_attribute(ATTR_HTTP_STATUS, response.status_code)
            result = self._to_response(url, response)

        if result.error:
            self._events.publish(BROWSER_ERROR, self.id, url=url, status=result.status, error=result.error)
        else:
            self._events.publish(BROWSER_NAVIGATED, self.id, url=url, status=result.status)
        return result

    async def submit_form(
        self,
        url: str,
        form_data: dict[str, str],
        method: str = "POST",
    ) -> BrowserResponse:
        """Submit *form_data* to *url* as query parameters (GET) or an
        urlencoded body (POST).

        ``current_url`` follows the final, post-redirect URL and cookies are
        stored under the host of the hop that set them.
        """
        self._ensure_active()
        method = method.upper()
        if method not in ("GET", "POST"):
            msg = f"Unsupported form method: {method}"
            raise ValueError(msg)

        with _tracer.start_as_current_span("browser.submit_form") as span:
            span.set_attribute(ATTR_SANDBOX_ID, self.id)
            span.set_attribute(ATTR_HTTP_METHOD, method)
            span.set_attribute(ATTR_HTTP_URL, url)
            try:
                if method == "GET":
                    response = await self._request("GET", url, params=form_data)
                else:
                    response = await self._request("POST", url, data=form_data)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                return self._failed(url, exc, method=method)

            span.set_attribute(ATTR_HTTP_STATUS, response.status_code)
            final_url = str(response.url)
            self.current_url = final_url
            result = self._to_response(final_url, response)

        if result.error:
            self._events.publish(
                BROWSER_ERROR, self.id, url=url, method=method, status=result.status, error=result.error
            )
        else:
            self._events.publish(BROWSER_FORM_SUBMITTED, self.id, url=url, method=method, status=result.status)
        return result

    async def login_to_website(
        self,
        url: str,
        username_field: str = "username",
        password_field: str = "password",
    ) -> BrowserResponse:
        """Log in to *url* with the stored credential for its host.

        Loads the page first (to pick up session cookies), then posts the
        username/password form.  Success is judged from the final status
        (2xx or 3xx).

        Raises:
            CredentialNotFoundError: If no credential is stored for the host.
        """
        self._ensure_active()
        domain = _host(url)
        credential = self._credentials.get(domain) if self._credentials is not None else None
        if credential is None:
            self._events.publish(BROWSER_ERROR, self.id, url=url, error=f"No credentials found for {domain}")
            raise CredentialNotFoundError(domain)

        await self.navigate_to(url)
        response = await self.submit_form(
            url,
            {username_field: credential.username, password_field: credential.password},
        )
        success = response.ok
        logger.info("Browser %s login to %s %s", self.id, domain, "succeeded" if success else "failed")
        self._events.publish(BROWSER_LOGIN, self.id, url=url, domain=domain, success=success)
        return response

    async def download_file(self, url: str, relative_path: str) -> Path:
        """Fetch *url* and write the body under ``data_dir``.

        Raises:
            BrowserError: If the request fails, the status is not 2xx, the
                target escapes ``data_dir``, or the file cannot be written.
        """
        self._ensure_active()
        root = self.data_dir.resolve()
        target = (root / relative_path).resolve()
        if not target.is_relative_to(root):
            msg = f"download path escapes browser data directory: {relative_path}"
            raise BrowserError(msg)

        try:
            response = await self._request("GET", url)
            response.raise_for_status()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(response.content)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            self._events.publish(BROWSER_ERROR, self.id, url=url, error=str(exc))
            msg = f"Download of {url} failed: {exc}"
            raise BrowserError(msg) from exc

        logger.info("Browser %s downloaded %s to %s", self.id, url, target)
        self._events.publish(BROWSER_FILE_DOWNLOADED, self.id, url=url, file_path=str(target))
        return target

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Persist the cookie jar and release the HTTP client.  Idempotent."""
        if not self._active:
            return
        self._active = False
        try:
            self.cookie_jar.save(self.cookies_path)
        except OSError as exc:
            msg = f"Cannot save cookies to {self.cookies_path}: {exc}"
            raise BrowserError(msg) from exc
        finally:
            await self._client.aclose()
            self._events.publish(BROWSER_CLOSED, self.id)
        logger.debug("Browser session %s closed", self.id)
