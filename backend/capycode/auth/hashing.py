"""
Access token hashing utilities.

Tokens are 256 random bits behind a cc_live_ prefix, so a plain SHA-256
digest is enough for lookup. Only the digest and a short display prefix
are stored.
"""

import hashlib
import secrets


_TOKEN_PREFIX = "cc_live_"
PREFIX_LENGTH = 12


def hash_token(raw_token: str) -> str:
    """Hash a raw access token; returns the hex digest used for lookup."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_access_token() -> tuple[str, str]:
    """
    Generate a new access token.

    Returns:
        (raw_token, token_hash) — raw_token is shown once, token_hash is stored.
    """
    raw_token = f"{_TOKEN_PREFIX}{secrets.token_hex(32)}"
    return raw_token, hash_token(raw_token)


def display_prefix(raw_token: str) -> str:
    """The non-secret head of a token, as stored in access_tokens.prefix."""
    return raw_token[:PREFIX_LENGTH]
