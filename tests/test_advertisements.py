from datetime import timedelta

import pytest

from models import db
from models.advertisement import Advertisement
from services import advertisements
from services.errors import AlreadyPublishedError, NotFoundError, ValidationError


def test_create_starts_as_draft(make_user, make_ad):
    owner = make_user()
    ad = make_ad(owner, slot_type="CATEGORY_SLOT", plan="daily", hours=None, days=3)

    assert ad.status == advertisements.STATUS_DRAFT
    assert ad.published_at is None
    assert ad.expires_at is None
    assert ad.plan_days == 3


def test_create_rejects_unknown_slot_type(make_user):
    owner = make_user()
    with pytest.raises(ValidationError):
        advertisements.create_advertisement(owner.id, "property", "SIDEBAR", "daily")


def test_lease_lifecycle(make_user, make_ad, clock):
    owner = make_user()
    ad = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=2)

    published = advertisements.publish_category(ad, clock.now(), "property_listing", 42)
    assert published.status == advertisements.STATUS_PUBLISHED
    assert published.expires_at - published.published_at == timedelta(hours=2)
    assert published.published_content_id == "42"

    # still live: cannot be published again
    clock.advance(hours=1)
    with pytest.raises(AlreadyPublishedError) as exc_info:
        advertisements.publish_category(ad, clock.now(), "property_listing", 42)
    assert exc_info.value.expires_at == ad.expires_at

    clock.advance(hours=1)
    assert advertisements.expire_due_leases(clock.now()) == [ad.id]
    db.session.refresh(ad)
    assert ad.status == advertisements.STATUS_EXPIRED

    # EXPIRED -> PUBLISHED starts a fresh cycle
    republished = advertisements.publish_category(ad, clock.now(), "property_listing", 42)
    assert republished.status == advertisements.STATUS_PUBLISHED
    assert republished.published_at == clock.now()
    assert republished.expires_at > republished.published_at


def test_lapsed_but_unswept_lease_can_be_republished(make_user, make_ad, clock):
    owner = make_user()
    ad = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=1)
    advertisements.publish_category(ad, clock.now(), "property_listing", 1)

    clock.advance(hours=3)
    advertisements.publish_category(ad, clock.now(), "property_listing", 1)

    assert ad.status == advertisements.STATUS_PUBLISHED
    assert ad.expires_at == clock.now() + timedelta(hours=1)


def test_expire_due_leases_is_idempotent(make_user, make_ad, clock):
    owner = make_user()
    ids = []
    for _ in range(2):
        ad = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=1)
        advertisements.publish_category(ad, clock.now(), "property_listing", 1)
        ids.append(ad.id)

    clock.advance(minutes=59)
    assert advertisements.expire_due_leases(clock.now()) == []

    clock.advance(minutes=1)
    assert advertisements.expire_due_leases(clock.now()) == ids
    assert advertisements.expire_due_leases(clock.now()) == []
    assert Advertisement.query.filter_by(status=advertisements.STATUS_EXPIRED).count() == 2


def test_home_banner_not_published_through_category_path(make_user, make_ad, clock):
    owner = make_user()
    ad = make_ad(owner, slot_type="HOME_BANNER")
    with pytest.raises(ValidationError):
        advertisements.publish_category(ad, clock.now(), "property_listing", 1)
    assert ad.status == advertisements.STATUS_DRAFT


def test_get_owned_hides_other_users_ads(make_user, make_ad):
    owner = make_user()
    stranger = make_user()
    ad = make_ad(owner)

    assert advertisements.get_owned(ad.id, owner.id).id == ad.id
    with pytest.raises(NotFoundError):
        advertisements.get_owned(ad.id, stranger.id)
    with pytest.raises(NotFoundError):
        advertisements.get_owned(9999, owner.id)


def test_list_for_user_filters(make_user, make_ad, clock):
    owner = make_user()
    draft = make_ad(owner, slot_type="CATEGORY_SLOT", plan="daily", hours=None, days=1)
    live = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=1)
    advertisements.publish_category(live, clock.now(), "property_listing", 5)

    assert {a.id for a in advertisements.list_for_user(owner.id)} == {draft.id, live.id}
    assert [a.id for a in advertisements.list_for_user(owner.id, status="published")] == [live.id]
    assert [a.id for a in advertisements.list_for_user(owner.id, plan="daily")] == [draft.id]
    with pytest.raises(ValidationError):
        advertisements.list_for_user(owner.id, status="ARCHIVED")


def test_leases_expiring_between_skips_warned(make_user, make_ad, clock):
    owner = make_user()
    soon = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=10)
    later = make_ad(owner, slot_type="CATEGORY_SLOT", plan="daily", hours=None, days=3)
    for ad in (soon, later):
        advertisements.publish_category(ad, clock.now(), "property_listing", ad.id)

    now = clock.now()
    window = (now + timedelta(hours=6), now + timedelta(hours=24))
    assert [a.id for a in advertisements.leases_expiring_between(*window, limit=10)] == [soon.id]

    assert advertisements.mark_expiry_warned(soon.id, now) is True
    assert advertisements.mark_expiry_warned(soon.id, now) is False
    assert advertisements.leases_expiring_between(*window, limit=10) == []


def test_stale_copy_cannot_republish_a_live_lease(make_user, make_ad, clock):
    owner = make_user()
    ad = make_ad(owner, slot_type="CATEGORY_SLOT", plan="hourly", hours=1)
    ad_id = ad.id
    advertisements.publish_category(ad, clock.now(), "property_listing", 1)
    first_expiry = ad.expires_at

    # a second request that loaded the row while it was still DRAFT
    db.session.expunge(ad)
    stale = Advertisement(id=ad_id, user_id=owner.id, category="property", slot_type="CATEGORY_SLOT",
                          selected_plan="hourly", plan_hours=1, status=advertisements.STATUS_DRAFT)
    clock.advance(minutes=10)
    with pytest.raises(AlreadyPublishedError):
        advertisements.apply_publish(stale, clock.now())

    row = db.session.get(Advertisement, ad_id)
    assert row.status == advertisements.STATUS_PUBLISHED
    assert row.expires_at == first_expiry
