"""
Tests for rate limiter bucketing and plan lookup (no database).
"""

import datetime

from capycode.services.rate_limiter import (
    PLAN_LIMITS,
    _day_bucket,
    _minute_bucket,
    limits_for_plan,
)

NOW = datetime.datetime(2026, 3, 1, 14, 37, 52, 123456, tzinfo=datetime.timezone.utc)


def test_minute_bucket_floors_seconds():
    assert _minute_bucket(NOW) == datetime.datetime(
        2026, 3, 1, 14, 37, tzinfo=datetime.timezone.utc
    )


def test_day_bucket_floors_to_midnight():
    assert _day_bucket(NOW) == datetime.datetime(2026, 3, 1, tzinfo=datetime.timezone.utc)


def test_known_plans():
    assert limits_for_plan("pro") is PLAN_LIMITS["pro"]
    assert limits_for_plan("team").sandboxes_per_day == 1_000


def test_unknown_or_missing_plan_is_free():
    assert limits_for_plan(None) is PLAN_LIMITS["free"]
    assert limits_for_plan("enterprise") is PLAN_LIMITS["free"]


def test_plans_are_ordered_by_quota():
    free, pro, team = (PLAN_LIMITS[p] for p in ("free", "pro", "team"))

    assert free.rpm < pro.rpm < team.rpm
    assert free.sandboxes_per_day < pro.sandboxes_per_day < team.sandboxes_per_day
