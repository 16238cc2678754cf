"""
Advertisement lease lifecycle.

DRAFT --publish--> PUBLISHED --sweep (now >= expires_at)--> EXPIRED --publish--> PUBLISHED ...

Every slot type, banner or category, goes through apply_publish() so the
plan table in services.plans is the only place expiration is decided.
"""

from sqlalchemy import or_

from models import db
from models.advertisement import Advertisement
from services.errors import AlreadyPublishedError, NotFoundError, ValidationError
from services.plans import compute_expires_at, validate_plan, SUPPORTED_PLANS
from utils.clock import isoformat

STATUS_DRAFT = "DRAFT"
STATUS_PUBLISHED = "PUBLISHED"
STATUS_EXPIRED = "EXPIRED"
STATUSES = {STATUS_DRAFT, STATUS_PUBLISHED, STATUS_EXPIRED}

SLOT_TYPE_HOME_BANNER = "HOME_BANNER"
SLOT_TYPE_CATEGORY = "CATEGORY_SLOT"
SLOT_TYPES = {SLOT_TYPE_HOME_BANNER, SLOT_TYPE_CATEGORY}


def create_advertisement(user_id: int, category: str, slot_type: str, selected_plan,
                         plan_hours=None, plan_days=None) -> Advertisement:
    category = (category or "").strip()
    if not category:
        raise ValidationError("category is required")
    if len(category) > 80:
        raise ValidationError("category must be at most 80 characters")

    slot_type = (slot_type or SLOT_TYPE_CATEGORY).strip().upper()
    if slot_type not in SLOT_TYPES:
        raise ValidationError(f"slot_type must be one of {', '.join(sorted(SLOT_TYPES))}")

    plan, hours, days = validate_plan(selected_plan, plan_hours, plan_days)

    ad = Advertisement(
        user_id=user_id,
        category=category,
        slot_type=slot_type,
        selected_plan=plan,
        plan_hours=hours,
        plan_days=days,
        status=STATUS_DRAFT,
    )
    db.session.add(ad)
    db.session.commit()
    return ad


def list_for_user(user_id: int, status=None, plan=None):
    q = Advertisement.query.filter_by(user_id=user_id)
    if status:
        status = status.strip().upper()
        if status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(sorted(STATUSES))}")
        q = q.filter_by(status=status)
    if plan:
        plan = plan.strip().lower()
        if plan not in SUPPORTED_PLANS:
            raise ValidationError(f"plan must be one of {', '.join(sorted(SUPPORTED_PLANS))}")
        q = q.filter_by(selected_plan=plan)
    return q.order_by(Advertisement.created_at.desc(), Advertisement.id.desc()).all()


def get_owned(advertisement_id, user_id: int) -> Advertisement:
    ad = db.session.get(Advertisement, advertisement_id) if advertisement_id else None
    if not ad or ad.user_id != user_id:
        raise NotFoundError("Advertisement not found")
    return ad


def apply_publish(ad: Advertisement, now, content_type=None, content_id=None) -> Advertisement:
    """
    Publish `ad` with a conditional UPDATE that only matches a lease that is
    not live: DRAFT, EXPIRED, or PUBLISHED with expires_at <= now. Concurrent
    publishers of one lease serialize on its row and only one of them matches.

    Not committed, so callers can make it part of a larger atomic write
    (see services.slot_pool.try_claim). On rejection the transaction is rolled
    back and AlreadyPublishedError carries the live lease's expires_at.
    """
    advertisement_id = ad.id
    values = {
        Advertisement.status: STATUS_PUBLISHED,
        Advertisement.published_at: now,
        Advertisement.expires_at: compute_expires_at(
            now, ad.selected_plan, hours=ad.plan_hours, days=ad.plan_days
        ),
        Advertisement.expiry_warned_at: None,
    }
    if content_type is not None:
        values[Advertisement.published_content_type] = content_type
        values[Advertisement.published_content_id] = str(content_id) if content_id is not None else None

    changed = (
        Advertisement.query
        .filter(
            Advertisement.id == advertisement_id,
            or_(
                Advertisement.status != STATUS_PUBLISHED,
                Advertisement.expires_at.is_(None),
                Advertisement.expires_at <= now,
            ),
        )
        .update(values, synchronize_session=False)
    )
    if not changed:
        db.session.rollback()
        raise AlreadyPublishedError(advertisement_id, ad.expires_at)

    db.session.expire(ad)
    return ad


def publish_category(ad: Advertisement, now, content_type, content_id) -> Advertisement:
    if ad.slot_type != SLOT_TYPE_CATEGORY:
        raise ValidationError("Home banner advertisements are published by claiming a slot")

    content_type = (content_type or "").strip()
    if not content_type or content_id in (None, ""):
        raise ValidationError("content_type and content_id are required")

    apply_publish(ad, now, content_type=content_type, content_id=content_id)
    db.session.commit()
    return ad


def expire_due_leases(now) -> list:
    """Move every lapsed published lease to EXPIRED. Returns the ids this call transitioned."""
    due = [
        advertisement_id
        for (advertisement_id,) in (
            db.session.query(Advertisement.id)
            .filter(
                Advertisement.status == STATUS_PUBLISHED,
                Advertisement.expires_at.isnot(None),
                Advertisement.expires_at <= now,
            )
            .order_by(Advertisement.expires_at.asc(), Advertisement.id.asc())
            .all()
        )
    ]

    expired = []
    for advertisement_id in due:
        # re-checked per row: a concurrent re-publish must not be flipped back
        changed = (
            Advertisement.query
            .filter(
                Advertisement.id == advertisement_id,
                Advertisement.status == STATUS_PUBLISHED,
                Advertisement.expires_at <= now,
            )
            .update({Advertisement.status: STATUS_EXPIRED}, synchronize_session=False)
        )
        if changed:
            expired.append(advertisement_id)
    db.session.commit()
    return expired


def leases_by_ids(advertisement_ids):
    if not advertisement_ids:
        return []
    return (
        Advertisement.query
        .filter(Advertisement.id.in_(list(advertisement_ids)))
        .order_by(Advertisement.id.asc())
        .all()
    )


def leases_expiring_between(start, end, limit: int):
    """Published leases that lapse inside [start, end] and were not warned this cycle."""
    return (
        Advertisement.query
        .filter(
            Advertisement.status == STATUS_PUBLISHED,
            Advertisement.expires_at >= start,
            Advertisement.expires_at <= end,
            Advertisement.expiry_warned_at.is_(None),
        )
        .order_by(Advertisement.expires_at.asc(), Advertisement.id.asc())
        .limit(limit)
        .all()
    )


def mark_expiry_warned(advertisement_id: int, now) -> bool:
    changed = (
        Advertisement.query
        .filter(Advertisement.id == advertisement_id, Advertisement.expiry_warned_at.is_(None))
        .update({Advertisement.expiry_warned_at: now}, synchronize_session=False)
    )
    db.session.commit()
    return changed > 0


def to_dict(ad: Advertisement):
    return {
        "id": ad.id,
        "category": ad.category,
        "slot_type": ad.slot_type,
        "selected_plan": ad.selected_plan,
        "plan_hours": ad.plan_hours,
        "plan_days": ad.plan_days,
        "status": ad.status,
        "published_at": isoformat(ad.published_at),
        "expires_at": isoformat(ad.expires_at),
        "published_content_type": ad.published_content_type,
        "published_content_id": ad.published_content_id,
        "created_at": isoformat(ad.created_at),
    }
