"""Waiting list for home-banner capacity, one pending request per user."""

import re

from sqlalchemy.exc import IntegrityError

from models import db
from models.slot_notification import SlotNotification
from services.errors import DuplicatePendingRequestError, NotFoundError, ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def enqueue(user_id: int, email: str, now) -> SlotNotification:
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address")

    row = SlotNotification(user_id=user_id, email=email, is_notified=False, created_at=now)
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Unique index uq_slot_notification_pending_user triggers here
        raise DuplicatePendingRequestError(user_id)
    return row


def pending_for_user(user_id: int):
    return SlotNotification.query.filter_by(user_id=user_id, is_notified=False).first()


def dequeue(batch_size: int):
    """Oldest pending requests first. Read-only: delivery is marked separately."""
    q = (
        SlotNotification.query
        .filter_by(is_notified=False)
        .order_by(SlotNotification.created_at.asc(), SlotNotification.id.asc())
    )
    if batch_size is not None:
        q = q.limit(batch_size)
    return q.all()


def mark_delivered(entry_id: int, now) -> bool:
    """Returns False when the entry was already delivered (or is gone)."""
    changed = (
        SlotNotification.query
        .filter_by(id=entry_id, is_notified=False)
        .update(
            {SlotNotification.is_notified: True, SlotNotification.notified_at: now},
            synchronize_session=False,
        )
    )
    db.session.commit()
    return changed > 0


def cancel(user_id: int):
    row = pending_for_user(user_id)
    if not row:
        raise NotFoundError("No pending notification found")
    row_id = row.id
    db.session.delete(row)
    db.session.commit()
    return row_id
