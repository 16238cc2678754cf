from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from flask import current_app

DEFAULT_TIMEZONE = "Asia/Colombo"


class ReferenceClock:
    """
    Single time source for all expiration math.
    Every instant it hands out is timezone-aware and expressed in the
    configured reference zone, never in the host's local zone.
    """

    def __init__(self, tz_name: str = DEFAULT_TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def localize(self, value):
        """Convert a stored instant (naive UTC or aware) into the reference zone."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)


class FrozenClock(ReferenceClock):
    """Clock that only moves when told to. Used by tests and simulations."""

    def __init__(self, at: datetime, tz_name: str = DEFAULT_TIMEZONE):
        super().__init__(tz_name)
        self._now = self.localize(at)

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime):
        self._now = self.localize(at)

    def advance(self, **kwargs):
        self._now = self.localize(self._now.astimezone(timezone.utc) + timedelta(**kwargs))
        return self._now


def get_clock() -> ReferenceClock:
    return current_app.extensions["reference_clock"]


def isoformat(value):
    if value is None:
        return None
    return get_clock().localize(value).isoformat()
