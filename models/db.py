from datetime import timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.types import DateTime, TypeDecorator

db = SQLAlchemy()


class UTCDateTime(TypeDecorator):
    """
    Stores naive UTC, hands back aware UTC.
    Aware values from the reference clock are normalized on the way in, so
    comparisons in SQL never depend on the server's local zone.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
