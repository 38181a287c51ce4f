"""AES-256-CBC envelope used for the credential file.

The on-disk form is ``<hex iv>:<hex ciphertext>`` with PKCS7 padding and a
fresh 16-byte IV for every encryption.
"""

from __future__ import annotations

import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from taskbox.errors import CredentialStoreError

KEY_SIZE = 32
IV_SIZE = 16


def derive_key(passphrase: str) -> bytes:
    """Derive a 256-bit AES key from a passphrase."""
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


def encrypt(plaintext: str, key: bytes) -> str:
    """Encrypt *plaintext* and return ``iv_hex:ciphertext_hex``."""
    _check_key(key)
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(envelope: str, key: bytes) -> str:
    """Reverse :func:`encrypt`.

    Raises:
        CredentialStoreError: If the envelope is malformed, the key is wrong,
            or the plaintext is not valid UTF-8.
    """
    _check_key(key)
    iv_hex, sep, body_hex = envelope.strip().partition(":")
    if not sep:
        raise CredentialStoreError("credential file is not in iv:ciphertext form")
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(body_hex)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except ValueError as exc:
        # bad hex, wrong IV length, bad padding and bad UTF-8 all land here
        raise CredentialStoreError(f"cannot decrypt credential file: {exc}") from exc


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise CredentialStoreError(f"encryption key must be {KEY_SIZE} bytes, got {len(key)}")
