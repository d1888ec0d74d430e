"""
Live validation of AI provider keys with one cheap request per provider.

  google    — GET  generativelanguage.googleapis.com/v1beta/models?key=…
  openai    — GET  api.openai.com/v1/models (Bearer)
  anthropic — POST api.anthropic.com/v1/messages, max_tokens=1
  custom    — format check only (longer than 10 characters)

Outcomes:
  • 429 (or a quota message from Google) → invalid, is_quota=True
  • 401/403                              → invalid, "Invalid API key"
  • transport failure                    → invalid, error = exception text
No retries. The key itself is never logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from capycode.core.config import settings

logger = logging.getLogger(__name__)

_GOOGLE_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"
_OPENAI_MODELS_URL = "https://api.openai.com/v1/models"
_ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
_ANTHROPIC_VERSION = "2023-06-01"
_ANTHROPIC_PROBE_MODEL = "claude-3-haiku-20240307"
_ANTHROPIC_KEY_PREFIX = "sk-ant-"


@dataclass(frozen=True, slots=True)
class KeyCheck:
    valid: bool
    error: str | None = None
    is_quota: bool = False


_INVALID = KeyCheck(valid=False, error="Invalid API key")


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return "Unknown error"


async def _check_google(client: httpx.AsyncClient, key: str) -> KeyCheck:
    response = await client.get(_GOOGLE_MODELS_URL, params={"key": key})
    if response.is_success:
        return KeyCheck(valid=True)

    message = _error_message(response)
    if response.status_code == 429 or "quota" in message or "rate" in message:
        return KeyCheck(valid=False, error="Quota exceeded", is_quota=True)
    if response.status_code in (401, 403):
        return _INVALID
    return KeyCheck(valid=False, error=message)


async def _check_openai(client: httpx.AsyncClient, key: str) -> KeyCheck:
    response = await client.get(
        _OPENAI_MODELS_URL, headers={"Authorization": f"Bearer {key}"}
    )
    if response.is_success:
        return KeyCheck(valid=True)
    if response.status_code == 429:
        return KeyCheck(valid=False, error="Rate limit or quota exceeded", is_quota=True)
    if response.status_code in (401, 403):
        return _INVALID
    return KeyCheck(valid=False, error=_error_message(response))


async def _check_anthropic(client: httpx.AsyncClient, key: str) -> KeyCheck:
    if not key.startswith(_ANTHROPIC_KEY_PREFIX):
        return KeyCheck(
            valid=False,
            error=f"Invalid key format. Should start with {_ANTHROPIC_KEY_PREFIX}",
        )

    response = await client.post(
        _ANTHROPIC_MESSAGES_URL,
        headers={
            "x-api-key": key,
            "anthropic-version": _ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        },
        json={
            "model": _ANTHROPIC_PROBE_MODEL,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "test"}],
        },
    )
    # Any non-auth answer means the key was accepted.
    if response.status_code in (401, 403):
        return _INVALID
    if response.status_code == 429:
        return KeyCheck(valid=False, error="Rate limit exceeded", is_quota=True)
    return KeyCheck(valid=True)


_CHECKS = {
    "google": _check_google,
    "openai": _check_openai,
    "anthropic": _check_anthropic,
}


async def validate_provider_key(
    provider: str,
    key: str,
    client: httpx.AsyncClient | None = None,
) -> KeyCheck:
    """
    Check whether `key` is usable with `provider`.

    Args:
        client: Optional shared client (tests pass one with a MockTransport).
    """
    check = _CHECKS.get(provider)
    if check is None:
        return KeyCheck(valid=True) if len(key) > 10 else _INVALID

    try:
        if client is not None:
            result = await check(client, key)
        else:
            async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_S) as owned:
                result = await check(owned, key)
    except httpx.HTTPError as exc:
        logger.warning("Key validation request to %s failed: %s", provider, type(exc).__name__)
        return KeyCheck(valid=False, error=str(exc) or "Network error")

    if not result.valid:
        logger.info("Key validation for %s failed: %s", provider, result.error)
    return result
