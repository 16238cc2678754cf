"""Plan table: how long a published advertisement stays live."""

from datetime import datetime, timedelta, timezone

from services.errors import ValidationError

PLAN_HOURLY = "hourly"
PLAN_DAILY = "daily"
PLAN_MONTHLY = "monthly"
PLAN_YEARLY = "yearly"

SUPPORTED_PLANS = {PLAN_HOURLY, PLAN_DAILY, PLAN_MONTHLY, PLAN_YEARLY}

MONTHLY_DAYS = 30
YEARLY_DAYS = 365
FALLBACK_DURATION = timedelta(days=1)


def plan_duration(selected_plan, hours=None, days=None) -> timedelta:
    """
    hourly/daily use the purchased amount (default 1), monthly and yearly
    are fixed, anything else falls back to one day.
    """
    if selected_plan == PLAN_HOURLY:
        return timedelta(hours=hours or 1)
    if selected_plan == PLAN_DAILY:
        return timedelta(days=days or 1)
    if selected_plan == PLAN_MONTHLY:
        return timedelta(days=MONTHLY_DAYS)
    if selected_plan == PLAN_YEARLY:
        return timedelta(days=YEARLY_DAYS)
    return FALLBACK_DURATION


def compute_expires_at(published_at: datetime, selected_plan, hours=None, days=None) -> datetime:
    # Absolute duration: add in UTC so a zone with DST rules cannot stretch or shrink it.
    delta = plan_duration(selected_plan, hours=hours, days=days)
    return (published_at.astimezone(timezone.utc) + delta).astimezone(published_at.tzinfo)


def validate_plan(selected_plan, hours=None, days=None):
    """Reject malformed purchases at the call site. Returns the normalized (plan, hours, days)."""
    plan = (selected_plan or "").strip().lower()
    if plan not in SUPPORTED_PLANS:
        raise ValidationError(f"selected_plan must be one of {', '.join(sorted(SUPPORTED_PLANS))}")

    hours = _positive_int_or_none(hours, "plan_hours")
    days = _positive_int_or_none(days, "plan_days")

    if plan == PLAN_HOURLY:
        return plan, hours, None
    if plan == PLAN_DAILY:
        return plan, None, days
    return plan, None, None


def _positive_int_or_none(value, field):
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise ValidationError(f"{field} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return number
