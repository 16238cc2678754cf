from datetime import datetime, timezone
from models.db import db, UTCDateTime


def _utcnow():
    return datetime.now(timezone.utc)


class Advertisement(db.Model):
    """A purchased, time-boxed advertisement slot (the lease)."""

    __tablename__ = "advertisements"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    category = db.Column(db.String(80), nullable=False)
    slot_type = db.Column(db.String(20), nullable=False, default="CATEGORY_SLOT")
    # slot_type values: HOME_BANNER, CATEGORY_SLOT

    selected_plan = db.Column(db.String(20), nullable=False)  # hourly, daily, monthly, yearly
    plan_hours = db.Column(db.Integer, nullable=True)
    plan_days = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="DRAFT")
    # status values: DRAFT, PUBLISHED, EXPIRED

    published_at = db.Column(UTCDateTime(), nullable=True)
    expires_at = db.Column(UTCDateTime(), nullable=True, index=True)
    expiry_warned_at = db.Column(UTCDateTime(), nullable=True)

    # opaque reference to whatever listing was attached at publish time
    published_content_type = db.Column(db.String(80), nullable=True)
    published_content_id = db.Column(db.String(80), nullable=True)

    created_at = db.Column(UTCDateTime(), default=_utcnow, nullable=False)
    updated_at = db.Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(
            "expires_at IS NULL OR published_at IS NULL OR expires_at > published_at",
            name="ck_advertisement_expires_after_publish",
        ),
        db.Index("ix_advertisements_status_expires_at", "status", "expires_at"),
    )

    def is_expired(self, now) -> bool:
        if self.status == "EXPIRED":
            return True
        return self.expires_at is not None and now >= self.expires_at
