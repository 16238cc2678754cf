import threading

import pytest

from models import db
from models.advertisement import Advertisement
from models.home_banner_slot import HomeBannerSlot
from services import advertisements, slot_pool
from services.errors import AlreadyPublishedError, SlotOccupiedError, ValidationError


def _active_rows(position):
    return HomeBannerSlot.query.filter_by(position=position, is_active=True).count()


def test_claim_publishes_and_occupies(make_user, make_ad, clock):
    owner = make_user()
    ad = make_ad(owner, plan="hourly", hours=1)

    slot = slot_pool.try_claim(4, ad, clock.now())

    assert slot.position == 4
    assert slot.is_active is True
    assert ad.status == advertisements.STATUS_PUBLISHED
    assert slot_pool.count_free(clock.now()) == 5


def test_claim_occupied_position_reports_occupant_expiry(make_user, make_ad, clock):
    first = make_ad(make_user(), plan="daily", hours=None, days=2)
    second = make_ad(make_user())
    slot_pool.try_claim(2, first, clock.now())

    with pytest.raises(SlotOccupiedError) as exc_info:
        slot_pool.try_claim(2, second, clock.now())

    assert exc_info.value.position == 2
    assert exc_info.value.expires_at == first.expires_at
    db.session.refresh(second)
    assert second.status == advertisements.STATUS_DRAFT
    assert _active_rows(2) == 1


@pytest.mark.parametrize("position", [0, 7, "3", None, 2.5, True])
def test_claim_rejects_bad_positions(make_user, make_ad, clock, position):
    ad = make_ad(make_user())
    with pytest.raises(ValidationError):
        slot_pool.try_claim(position, ad, clock.now())


def test_claim_takes_over_lapsed_occupant(make_user, make_ad, clock):
    stale = make_ad(make_user(), plan="hourly", hours=1)
    fresh = make_ad(make_user(), plan="hourly", hours=1)
    slot_pool.try_claim(1, stale, clock.now())

    clock.advance(minutes=61)
    slot = slot_pool.try_claim(1, fresh, clock.now())

    assert slot.advertisement_id == fresh.id
    assert _active_rows(1) == 1


def test_live_lease_cannot_claim_twice(make_user, make_ad, clock):
    ad = make_ad(make_user(), plan="hourly", hours=3)
    slot_pool.try_claim(1, ad, clock.now())

    with pytest.raises(AlreadyPublishedError):
        slot_pool.try_claim(5, ad, clock.now())
    assert slot_pool.active_slot(5) is None


def test_republished_lease_gives_up_old_position(make_user, make_ad, clock):
    ad = make_ad(make_user(), plan="hourly", hours=1)
    slot_pool.try_claim(1, ad, clock.now())

    clock.advance(hours=2)
    slot_pool.try_claim(3, ad, clock.now())

    assert _active_rows(1) == 0
    assert _active_rows(3) == 1


def test_release_is_idempotent(make_user, make_ad, clock):
    ad = make_ad(make_user())
    slot_pool.try_claim(6, ad, clock.now())

    assert slot_pool.release(6, clock.now()) is True
    assert slot_pool.release(6, clock.now()) is False
    assert slot_pool.release(2, clock.now()) is False
    assert slot_pool.count_free(clock.now()) == 6


def test_count_free_heals_lapsed_positions(make_user, make_ad, clock):
    ad = make_ad(make_user(), plan="hourly", hours=1)
    slot = slot_pool.try_claim(4, ad, clock.now())

    clock.advance(minutes=59)
    assert slot_pool.count_free(clock.now()) == 5

    clock.advance(minutes=2)
    assert slot_pool.count_free(clock.now()) == 6
    released = db.session.get(HomeBannerSlot, slot.id)
    db.session.refresh(released)
    assert released.is_active is False
    assert released.released_at is not None


def test_availability_lists_every_position(make_user, make_ad, clock):
    ad = make_ad(make_user(), plan="hourly", hours=1)
    slot_pool.try_claim(3, ad, clock.now())

    rows = slot_pool.availability(clock.now())

    assert [r["slot_number"] for r in rows] == [1, 2, 3, 4, 5, 6]
    taken = rows[2]
    assert taken["is_available"] is False
    assert taken["expires_at"] == ad.expires_at
    assert all(r["is_available"] for i, r in enumerate(rows) if i != 2)


def test_concurrent_claims_have_one_winner(app, make_user, make_ad, clock):
    contenders = 4
    ad_ids = [make_ad(make_user(), plan="hourly", hours=1).id for _ in range(contenders)]
    barrier = threading.Barrier(contenders)
    outcomes = []
    lock = threading.Lock()

    def contend(ad_id):
        with app.app_context():
            ad = db.session.get(Advertisement, ad_id)
            barrier.wait()
            try:
                slot_pool.try_claim(3, ad, clock.now())
                result = "won"
            except SlotOccupiedError:
                result = "occupied"
            except Exception as exc:
                result = f"error: {exc}"
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=contend, args=(ad_id,)) for ad_id in ad_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert sorted(outcomes) == ["occupied"] * (contenders - 1) + ["won"]
    db.session.expire_all()
    assert _active_rows(3) == 1
    assert Advertisement.query.filter_by(status=advertisements.STATUS_PUBLISHED).count() == 1


def test_one_lease_racing_for_two_positions_publishes_once(app, make_user, make_ad, clock):
    ad_id = make_ad(make_user(), plan="hourly", hours=1).id
    barrier = threading.Barrier(2)
    outcomes = {}
    seen = []
    lock = threading.Lock()

    def contend(position):
        with app.app_context():
            ad = db.session.get(Advertisement, ad_id)
            seen.append(ad.status)
            barrier.wait()
            try:
                slot_pool.try_claim(position, ad, clock.now())
                result = "won"
            except AlreadyPublishedError:
                result = "already"
            except Exception as exc:
                result = f"error: {exc}"
            finally:
                db.session.remove()
            with lock:
                outcomes[position] = result

    threads = [threading.Thread(target=contend, args=(position,)) for position in (1, 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert seen == [advertisements.STATUS_DRAFT] * 2
    assert sorted(outcomes.values()) == ["already", "won"]
    winner = next(p for p, result in outcomes.items() if result == "won")
    db.session.expire_all()
    active = HomeBannerSlot.query.filter_by(advertisement_id=ad_id, is_active=True).all()
    assert [s.position for s in active] == [winner]


def test_second_active_position_for_one_lease_is_rejected_by_the_store(make_user, make_ad, clock):
    from sqlalchemy.exc import IntegrityError

    ad = make_ad(make_user(), plan="hourly", hours=1)
    slot_pool.try_claim(1, ad, clock.now())

    db.session.add(HomeBannerSlot(position=2, advertisement_id=ad.id, user_id=ad.user_id,
                                  is_active=True, published_at=clock.now()))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
    assert _active_rows(2) == 0
