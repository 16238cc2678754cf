from datetime import datetime, timezone
from models.db import db, UTCDateTime


class HomeBannerSlot(db.Model):
    __tablename__ = "home_banner_slots"

    id = db.Column(db.Integer, primary_key=True)

    position = db.Column(db.Integer, nullable=False, index=True)  # 1..HOME_BANNER_SLOT_COUNT
    advertisement_id = db.Column(db.Integer, db.ForeignKey("advertisements.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    published_at = db.Column(UTCDateTime(), nullable=False)
    released_at = db.Column(UTCDateTime(), nullable=True)
    created_at = db.Column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False)

    advertisement = db.relationship("Advertisement", lazy="joined")

    __table_args__ = (
        # Hard business-rule: one active occupant per position; inactive history rows may repeat
        db.Index(
            "uq_home_banner_active_position",
            "position",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
        # a lease holds at most one active position
        db.Index(
            "uq_home_banner_active_advertisement",
            "advertisement_id",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
        db.Index("ix_home_banner_slots_active_published", "is_active", "published_at"),
    )
