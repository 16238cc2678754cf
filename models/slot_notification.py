from datetime import datetime, timezone
from models.db import db, UTCDateTime


class SlotNotification(db.Model):
    """A user's standing request to hear about free home-banner capacity."""

    __tablename__ = "slot_notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)

    is_notified = db.Column(db.Boolean, default=False, nullable=False)
    notified_at = db.Column(UTCDateTime(), nullable=True)
    created_at = db.Column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        # one pending request per user; delivered history rows may repeat
        db.Index(
            "uq_slot_notification_pending_user",
            "user_id",
            unique=True,
            sqlite_where=db.text("is_notified = 0"),
            postgresql_where=db.text("NOT is_notified"),
        ),
        db.Index("ix_slot_notifications_pending_fifo", "is_notified", "created_at"),
    )
