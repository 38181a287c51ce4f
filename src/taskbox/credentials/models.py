"""Data models for the credential store."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Credential(BaseModel):
    """Login material for one website domain."""

    username: str = Field(..., description="Account name submitted in the username field.")
    password: str = Field(..., description="Secret submitted in the password field.")

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, password='***')"

    __str__ = __repr__
