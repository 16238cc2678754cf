"""
Home-banner slot pool.

Exclusivity is enforced by the store, not by this process: claiming a
position is a single INSERT guarded by the partial unique index
uq_home_banner_active_position, so concurrent claims on the same position
resolve to exactly one winner and IntegrityError for everyone else.
One lease racing for two positions is settled earlier, by the conditional
publish in services.advertisements.apply_publish.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.home_banner_slot import HomeBannerSlot
from services import advertisements
from services.errors import SlotOccupiedError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SLOT_COUNT = 6

# one retry after clearing a lapsed occupant; a second collision is a real occupant
_CLAIM_ATTEMPTS = 2


def slot_count() -> int:
    return int(current_app.config.get("HOME_BANNER_SLOT_COUNT", DEFAULT_SLOT_COUNT))


def validate_position(position) -> int:
    if isinstance(position, bool) or not isinstance(position, int):
        raise ValidationError(f"Slot number must be an integer between 1 and {slot_count()}")
    if position < 1 or position > slot_count():
        raise ValidationError(f"Slot number must be between 1 and {slot_count()}")
    return position


def active_slot(position: int):
    return HomeBannerSlot.query.filter_by(position=position, is_active=True).first()


def is_occupant_expired(slot: HomeBannerSlot, now) -> bool:
    ad = slot.advertisement
    if ad is None:
        return True
    return ad.is_expired(now)


def try_claim(position, advertisement, now) -> HomeBannerSlot:
    """
    Bind `advertisement` to `position` and publish it in the same transaction.
    Raises SlotOccupiedError (with the occupant's expires_at) when another live
    lease holds the position, AlreadyPublishedError when the lease is still live.
    """
    position = validate_position(position)
    advertisement_id = advertisement.id
    owner_id = advertisement.user_id

    for _ in range(_CLAIM_ATTEMPTS):
        advertisements.apply_publish(advertisement, now)

        # A re-published lease gives up whatever position it held in its previous cycle
        (
            HomeBannerSlot.query
            .filter_by(advertisement_id=advertisement_id, is_active=True)
            .update(
                {HomeBannerSlot.is_active: False, HomeBannerSlot.released_at: now},
                synchronize_session=False,
            )
        )

        slot = HomeBannerSlot(
            position=position,
            advertisement_id=advertisement_id,
            user_id=owner_id,
            is_active=True,
            published_at=now,
        )
        db.session.add(slot)
        try:
            db.session.commit()
            return slot
        except IntegrityError:
            db.session.rollback()

        occupant = active_slot(position)
        if occupant is None:
            # released between our insert and this read; try again
            continue
        if is_occupant_expired(occupant, now):
            release_slot(occupant.id, now)
            continue
        raise SlotOccupiedError(position, occupant.advertisement.expires_at)

    occupant = active_slot(position)
    raise SlotOccupiedError(position, occupant.advertisement.expires_at if occupant else None)


def release_slot(slot_id: int, now) -> bool:
    """Deactivate one slot row. Returns False when it was already inactive."""
    changed = (
        HomeBannerSlot.query
        .filter_by(id=slot_id, is_active=True)
        .update(
            {HomeBannerSlot.is_active: False, HomeBannerSlot.released_at: now},
            synchronize_session=False,
        )
    )
    db.session.commit()
    return changed > 0


def release(position, now) -> bool:
    """Deactivate whatever occupies `position`. Releasing a free position is a no-op."""
    position = validate_position(position)
    changed = (
        HomeBannerSlot.query
        .filter_by(position=position, is_active=True)
        .update(
            {HomeBannerSlot.is_active: False, HomeBannerSlot.released_at: now},
            synchronize_session=False,
        )
    )
    db.session.commit()
    return changed > 0


def _live_slots(now):
    """Active rows whose lease is still live; lapsed occupants are released on the way."""
    live = []
    for slot in HomeBannerSlot.query.filter_by(is_active=True).all():
        if is_occupant_expired(slot, now):
            release_slot(slot.id, now)
        else:
            live.append(slot)
    return live


def count_free(now) -> int:
    occupied = {slot.position for slot in _live_slots(now)}
    return max(slot_count() - len(occupied), 0)


def availability(now):
    """One entry per position, with the occupant's expires_at when taken."""
    by_position = {slot.position: slot for slot in _live_slots(now)}
    out = []
    for position in range(1, slot_count() + 1):
        slot = by_position.get(position)
        out.append({
            "slot_number": position,
            "is_available": slot is None,
            "occupied_by": slot.id if slot else None,
            "expires_at": slot.advertisement.expires_at if slot else None,
        })
    return out


def list_active(now, limit: int = 10):
    live = _live_slots(now)
    live.sort(key=lambda s: (s.published_at, s.id), reverse=True)
    return live[:limit]
