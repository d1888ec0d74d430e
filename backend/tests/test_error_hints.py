"""
Tests for provider error message classification.
"""

import pytest

from capycode.services.error_hints import classify_error


@pytest.mark.parametrize(
    "message, category",
    [
        ("429 quota exceeded for this project", "quota"),
        ("Invalid API key", "invalid_key"),
        ("401 Unauthorized", "invalid_key"),
        ("Network error", "connection"),
        ("Failed to fetch", "connection"),
        ("Service Unavailable", "unavailable"),
        ("Provider not configured", "unavailable"),
        ("Too many requests", "rate_limit"),
        ("Something odd happened", "unknown"),
        ("", "unknown"),
        (None, "unknown"),
    ],
)
def test_classify_error(message, category):
    assert classify_error(message).category == category


def test_quota_wins_over_rate():
    assert classify_error("Rate limit exceeded").category == "quota"


def test_unknown_hint_text():
    assert classify_error("???").hint == "An unexpected error occurred."
