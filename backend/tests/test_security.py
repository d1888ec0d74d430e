"""
Tests for access token hashing and the provider key vault.
"""

import pytest

from capycode.auth.hashing import (
    PREFIX_LENGTH,
    display_prefix,
    generate_access_token,
    hash_token,
)
from capycode.services.key_vault import KeyVaultError, decrypt_key, encrypt_key, mask_key


class TestTokenHashing:
    def test_hash_is_deterministic_hex(self):
        digest = hash_token("cc_live_abc")

        assert digest == hash_token("cc_live_abc")
        assert len(digest) == 64
        assert digest != hash_token("cc_live_abd")

    def test_generated_token_matches_its_hash(self):
        raw, digest = generate_access_token()

        assert raw.startswith("cc_live_")
        assert hash_token(raw) == digest

    def test_generated_tokens_are_unique(self):
        assert generate_access_token()[0] != generate_access_token()[0]

    def test_display_prefix(self):
        raw, _ = generate_access_token()

        assert display_prefix(raw) == raw[:PREFIX_LENGTH]
        assert display_prefix(raw).startswith("cc_live_")


class TestKeyVault:
    def test_encrypt_then_decrypt(self):
        ciphertext = encrypt_key("sk-ant-secret-value")

        assert "sk-ant-secret-value" not in ciphertext
        assert decrypt_key(ciphertext) == "sk-ant-secret-value"

    def test_ciphertexts_differ_per_call(self):
        assert encrypt_key("same-key") != encrypt_key("same-key")

    def test_wrong_secret_cannot_decrypt(self):
        ciphertext = encrypt_key("sk-test-123", secret="one")

        with pytest.raises(KeyVaultError):
            decrypt_key(ciphertext, secret="two")

    def test_garbage_ciphertext(self):
        with pytest.raises(KeyVaultError):
            decrypt_key("not-a-fernet-token")

    def test_missing_secret(self):
        with pytest.raises(KeyVaultError):
            encrypt_key("sk-test-123", secret="")

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            encrypt_key("")


class TestMaskKey:
    def test_long_key_shows_head_and_tail(self):
        assert mask_key("sk-abcdefghijklmnop9xQ2") == "sk-a...9xQ2"

    def test_short_key_fully_masked(self):
        assert mask_key("abc12345") == "****"
