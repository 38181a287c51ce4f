"""Cookie-aware pseudo-browser sessions."""

from taskbox.browser.cookies import CookieJar
from taskbox.browser.models import AuthenticatedActionResult, AuthenticationResult, BrowserResponse
from taskbox.browser.session import BrowserSession

__all__ = [
    "AuthenticatedActionResult",
    "AuthenticationResult",
    "BrowserResponse",
    "BrowserSession",
    "CookieJar",
]
