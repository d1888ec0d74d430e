"""
Turn raw provider error messages into short, actionable hints.

Matching is a case-insensitive substring test against an ordered rule
list; the first rule that matches wins, so "429 quota exceeded" is a
quota problem even though it also mentions a rate.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ErrorHint:
    category: str
    hint: str


_RULES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    (
        "quota",
        ("quota", "exceeded", "limit", "429"),
        "API quota exceeded. Wait for the limit to reset, or check the plan "
        "and billing for this key.",
    ),
    (
        "invalid_key",
        ("api key", "unauthorized", "401", "invalid"),
        "The API key was rejected. Check for stray spaces or a truncated key, "
        "make sure billing is set up, or generate a new key.",
    ),
    (
        "connection",
        ("network", "fetch", "connection", "timeout"),
        "Could not reach the AI service. Check the connection and try again "
        "in a few moments.",
    ),
    (
        "unavailable",
        ("503", "service unavailable", "not configured"),
        "The AI service is temporarily unavailable. Try again in a few minutes.",
    ),
    (
        "rate_limit",
        ("rate", "too many"),
        "Too many requests. Wait 30 to 60 seconds before trying again.",
    ),
)

_GENERIC = ErrorHint(category="unknown", hint="An unexpected error occurred.")


def classify_error(message: str | None) -> ErrorHint:
    text = (message or "").lower()
    for category, needles, hint in _RULES:
        if any(needle in text for needle in needles):
            return ErrorHint(category=category, hint=hint)
    return _GENERIC
