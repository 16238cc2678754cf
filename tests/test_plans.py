from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from services.errors import ValidationError
from services.plans import compute_expires_at, plan_duration, validate_plan

COLOMBO = ZoneInfo("Asia/Colombo")
T = datetime(2026, 3, 1, 12, 30, tzinfo=COLOMBO)


@pytest.mark.parametrize(
    "plan, hours, days, expected",
    [
        ("hourly", 3, None, timedelta(hours=3)),
        ("hourly", None, None, timedelta(hours=1)),
        ("daily", None, None, timedelta(days=1)),
        ("daily", None, 4, timedelta(days=4)),
        ("monthly", 5, 9, timedelta(days=30)),
        ("yearly", None, None, timedelta(days=365)),
        ("bogus", 8, 8, timedelta(days=1)),
        (None, None, None, timedelta(days=1)),
    ],
)
def test_expiration_table(plan, hours, days, expected):
    assert compute_expires_at(T, plan, hours=hours, days=days) - T == expected
    assert plan_duration(plan, hours=hours, days=days) == expected


def test_expiry_keeps_reference_zone():
    expires = compute_expires_at(T, "daily", days=2)
    assert expires.tzinfo == COLOMBO
    assert expires == datetime(2026, 3, 3, 12, 30, tzinfo=COLOMBO)


def test_expiry_is_absolute_across_zones():
    utc_start = T.astimezone(timezone.utc)
    assert compute_expires_at(utc_start, "hourly", hours=5) == compute_expires_at(T, "hourly", hours=5)


def test_validate_plan_normalizes():
    assert validate_plan(" Hourly ", "3", 7) == ("hourly", 3, None)
    assert validate_plan("DAILY", 2, 5) == ("daily", None, 5)
    assert validate_plan("yearly", 2, 5) == ("yearly", None, None)


@pytest.mark.parametrize(
    "plan, hours, days",
    [
        ("weekly", None, None),
        ("", None, None),
        ("hourly", 0, None),
        ("hourly", -2, None),
        ("daily", None, "two"),
        ("hourly", True, None),
    ],
)
def test_validate_plan_rejects_malformed(plan, hours, days):
    with pytest.raises(ValidationError):
        validate_plan(plan, hours, days)
