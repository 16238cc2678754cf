from flask import Blueprint, request, jsonify, g

from models import db
from models.home_banner_slot import HomeBannerSlot
from services import advertisements, notification_queue, slot_pool
from services.errors import (
    AlreadyPublishedError,
    DuplicatePendingRequestError,
    NotFoundError,
    SlotOccupiedError,
    ValidationError,
)
from utils.auth_context import login_required
from utils.audit import log_event
from utils.clock import get_clock, isoformat

home_banner_bp = Blueprint("home_banner", __name__, url_prefix="/home-banner-slot")


def _parse_id(value):
    """Positive int from JSON (int or digit string), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def _slot_json(slot: HomeBannerSlot):
    ad = slot.advertisement
    return {
        "id": slot.id,
        "slot_number": slot.position,
        "advertisement_id": slot.advertisement_id,
        "user_id": slot.user_id,
        "is_active": slot.is_active,
        "published_at": isoformat(slot.published_at),
        "expires_at": isoformat(ad.expires_at) if ad else None,
    }


def _notification_json(row):
    return {
        "id": row.id,
        "email": row.email,
        "is_notified": row.is_notified,
        "notified_at": isoformat(row.notified_at),
        "created_at": isoformat(row.created_at),
    }


# ---------- PUBLIC: availability (self-healing) ----------
@home_banner_bp.get("/slots/availability")
def slot_availability():
    rows = slot_pool.availability(get_clock().now())
    for row in rows:
        row["expires_at"] = isoformat(row["expires_at"])
    return jsonify(rows), 200


@home_banner_bp.get("/slots/free-count")
def free_slot_count():
    free = slot_pool.count_free(get_clock().now())
    return jsonify(free=free, total=slot_pool.slot_count()), 200


@home_banner_bp.get("/active")
def active_banners():
    slots = slot_pool.list_active(get_clock().now())
    return jsonify([_slot_json(s) for s in slots]), 200


# ---------- OWNERS: claim a position (DOUBLE-CLAIM SAFE) ----------
@home_banner_bp.post("/publish")
@login_required
def publish_banner():
    data = request.get_json(silent=True) or {}
    raw_id = data.get("advertisement_id")
    slot_number = data.get("slot_number")
    if raw_id in (None, "") or slot_number is None:
        return jsonify(error="advertisement_id and slot_number are required"), 400
    advertisement_id = _parse_id(raw_id)
    if advertisement_id is None:
        return jsonify(error="advertisement_id must be a positive integer"), 400

    try:
        ad = advertisements.get_owned(advertisement_id, g.user.id)
        if ad.slot_type != advertisements.SLOT_TYPE_HOME_BANNER:
            return jsonify(error="Advertisement not eligible for a home banner slot"), 400
        slot = slot_pool.try_claim(slot_number, ad, get_clock().now())
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except NotFoundError as exc:
        return jsonify(error=str(exc)), 404
    except AlreadyPublishedError as exc:
        return jsonify(error=str(exc), expires_at=isoformat(exc.expires_at)), 409
    except SlotOccupiedError as exc:
        log_event("SLOT_CLAIM_FAIL_OCCUPIED", user_id=g.user.id, entity="home_banner_slot",
                  entity_id=exc.position, metadata={"advertisement_id": advertisement_id})
        return jsonify(
            error=f"{exc} Please select another slot.",
            slot_number=exc.position,
            expires_at=isoformat(exc.expires_at),
        ), 409

    log_event("SLOT_CLAIM", user_id=g.user.id, entity="home_banner_slot", entity_id=slot.id,
              metadata={"position": slot.position, "advertisement_id": slot.advertisement_id})
    return jsonify(
        home_banner_slot=_slot_json(slot),
        advertisement=advertisements.to_dict(slot.advertisement),
    ), 201


# ---------- OWNERS: withdraw a banner (frees the position now) ----------
@home_banner_bp.post("/<int:slot_id>/withdraw")
@login_required
def withdraw_banner(slot_id: int):
    slot = db.session.get(HomeBannerSlot, slot_id)
    if not slot or slot.user_id != g.user.id:
        return jsonify(error="Home banner slot not found"), 404

    released = slot_pool.release_slot(slot.id, get_clock().now())
    if released:
        log_event("SLOT_RELEASE", user_id=g.user.id, entity="home_banner_slot", entity_id=slot_id,
                  metadata={"reason": "withdrawn"})
    return jsonify(message="Withdrawn", released=released), 200


# ---------- USERS: slot-available notifications ----------
@home_banner_bp.post("/notify-me")
@login_required
def notify_me():
    data = request.get_json(silent=True) or {}
    try:
        row = notification_queue.enqueue(g.user.id, data.get("email"), get_clock().now())
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except DuplicatePendingRequestError as exc:
        return jsonify(error=str(exc)), 409

    log_event("SLOT_NOTIFY_REQUEST", user_id=g.user.id, entity="slot_notification", entity_id=row.id)
    return jsonify(
        message="You will be notified via email when a slot becomes available",
        data=_notification_json(row),
    ), 201


@home_banner_bp.get("/my-notification")
@login_required
def my_notification():
    row = notification_queue.pending_for_user(g.user.id)
    return jsonify(data=_notification_json(row) if row else None), 200


@home_banner_bp.delete("/cancel-notification")
@login_required
def cancel_notification():
    try:
        row_id = notification_queue.cancel(g.user.id)
    except NotFoundError as exc:
        return jsonify(error=str(exc)), 404

    log_event("SLOT_NOTIFY_CANCEL", user_id=g.user.id, entity="slot_notification", entity_id=row_id)
    return jsonify(message="Notification request cancelled successfully"), 200
