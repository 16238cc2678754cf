from datetime import datetime, timezone
from models.db import db, UTCDateTime


class AuditLog(db.Model):
    """Append-only trail of slot claims, releases and job triggers."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # NULL when the scheduler acted
    action = db.Column(db.String(80), nullable=False)  # SLOT_CLAIM, SLOT_RELEASE, RECONCILE_MANUAL_TRIGGER ...
    entity = db.Column(db.String(80), nullable=True)   # home_banner_slot, advertisement, slot_notification, job
    entity_id = db.Column(db.String(80), nullable=True)

    # client details; empty for scheduler runs
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    __table_args__ = (
        db.Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
    )
