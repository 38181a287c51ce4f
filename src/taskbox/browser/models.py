"""Data models for browser sessions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class BrowserResponse(BaseModel):
    """Outcome of a navigation or form submission.

    Network failures are reported in-band: ``error`` is set and ``status``
    carries the server's status when there was a response, 500 otherwise.
    """

    url: str = Field(..., description="URL the response belongs to.")
    status: int = Field(..., description="HTTP status code.")
    content: str = Field(default="", description="Decoded response body.")
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers.")
    error: str | None = Field(default=None, description="Failure message, if the request failed.")

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 400


class AuthenticationResult(BaseModel):
    """Result of logging in to a website with stored credentials."""

    success: bool
    url: str | None = None
    status: int | None = None
    error: str | None = None


class AuthenticatedActionResult(BaseModel):
    """Result of an action performed after authenticating."""

    success: bool
    result: Any = None
    error: str | None = None
