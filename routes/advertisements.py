from flask import Blueprint, request, jsonify, g

from services import advertisements
from services.errors import AlreadyPublishedError, NotFoundError, ValidationError
from utils.auth_context import login_required
from utils.audit import log_event
from utils.clock import get_clock, isoformat

advertisements_bp = Blueprint("advertisements", __name__, url_prefix="/advertisements")


# ---------- OWNERS: create a draft (payment handled upstream) ----------
@advertisements_bp.post("")
@login_required
def create_advertisement():
    data = request.get_json(silent=True) or {}
    try:
        ad = advertisements.create_advertisement(
            user_id=g.user.id,
            category=data.get("category"),
            slot_type=data.get("slot_type"),
            selected_plan=data.get("selected_plan"),
            plan_hours=data.get("plan_hours"),
            plan_days=data.get("plan_days"),
        )
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400

    log_event("ADVERTISEMENT_CREATE", user_id=g.user.id, entity="advertisement", entity_id=ad.id,
              metadata={"plan": ad.selected_plan, "slot_type": ad.slot_type})
    return jsonify(advertisements.to_dict(ad)), 201


# ---------- OWNERS: my advertisements ----------
@advertisements_bp.get("/me")
@login_required
def my_advertisements():
    # optional filters: status (DRAFT/PUBLISHED/EXPIRED), plan
    try:
        rows = advertisements.list_for_user(
            g.user.id,
            status=request.args.get("status"),
            plan=request.args.get("plan"),
        )
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    return jsonify([advertisements.to_dict(ad) for ad in rows]), 200


# ---------- OWNERS: publish a category advertisement ----------
@advertisements_bp.post("/<int:advertisement_id>/publish")
@login_required
def publish_advertisement(advertisement_id: int):
    data = request.get_json(silent=True) or {}
    try:
        ad = advertisements.get_owned(advertisement_id, g.user.id)
        advertisements.publish_category(
            ad,
            get_clock().now(),
            content_type=data.get("content_type"),
            content_id=data.get("content_id"),
        )
    except NotFoundError as exc:
        return jsonify(error=str(exc)), 404
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except AlreadyPublishedError as exc:
        return jsonify(error=str(exc), expires_at=isoformat(exc.expires_at)), 409

    log_event("ADVERTISEMENT_PUBLISH", user_id=g.user.id, entity="advertisement", entity_id=ad.id,
              metadata={"expires_at": isoformat(ad.expires_at)})
    return jsonify(advertisements.to_dict(ad)), 200
