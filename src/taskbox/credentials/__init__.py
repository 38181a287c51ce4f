"""Encrypted credential storage."""

from taskbox.credentials.crypto import decrypt, derive_key, encrypt
from taskbox.credentials.models import Credential
from taskbox.credentials.store import CredentialStore, normalize_domain

__all__ = [
    "Credential",
    "CredentialStore",
    "decrypt",
    "derive_key",
    "encrypt",
    "normalize_domain",
]
