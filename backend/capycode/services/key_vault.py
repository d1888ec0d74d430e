"""
Encryption at rest for user-supplied AI provider keys.

Keys are Fernet-encrypted with a key derived from KEY_ENCRYPTION_SECRET
(SHA-256 of the secret, urlsafe-base64 encoded). Only the ciphertext and
a masked preview are stored; plaintext is decrypted on demand for
validation and never logged.
"""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from capycode.core.config import settings


class KeyVaultError(Exception):
    """Raised when the vault is unconfigured or a ciphertext cannot be decrypted."""


def _fernet(secret: str | None = None) -> Fernet:
    secret = settings.KEY_ENCRYPTION_SECRET if secret is None else secret
    if not secret:
        raise KeyVaultError("KEY_ENCRYPTION_SECRET is not configured")
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_key(raw_key: str, secret: str | None = None) -> str:
    if not raw_key:
        raise ValueError("Key must not be empty")
    return _fernet(secret).encrypt(raw_key.encode("utf-8")).decode("utf-8")


def decrypt_key(ciphertext: str, secret: str | None = None) -> str:
    try:
        value = _fernet(secret).decrypt(ciphertext.encode("utf-8"))
    except InvalidToken as exc:
        raise KeyVaultError("Unable to decrypt key (invalid token or secret mismatch)") from exc
    return value.decode("utf-8")


def mask_key(raw_key: str) -> str:
    """Short display form, e.g. 'sk-a...9xQ2'. Never enough to reconstruct the key."""
    if len(raw_key) <= 8:
        return "****"
    return f"{raw_key[:4]}...{raw_key[-4:]}"
