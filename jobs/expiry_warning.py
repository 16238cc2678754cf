"""
Owner notices about a lease's expiry.

Two messages share the owner lookup and the throttled dispatcher:
  - "expiring soon": leases lapsing within the warning window, sent once per
    publish cycle (expiry_warned_at) by ExpiryWarningJob.
  - "expired": sent by the reconciliation sweep for every lease it moved to
    EXPIRED (send_expired_notices). The transition happens once, so a failed
    notice is logged and not retried.
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Optional

from models import db
from models.user import User
from services import advertisements, job_locks
from jobs.dispatcher import send_in_batches
from utils.clock import get_clock

logger = logging.getLogger(__name__)

EXPIRY_WARNING_LOCK = "advertisement_expiry_warning"


@dataclass
class ExpiringLease:
    advertisement_id: int
    email: str
    name: str
    category: str
    expires_at: object


@dataclass
class WarningSummary:
    success: bool = True
    skipped: bool = False
    candidates: int = 0
    warned: int = 0
    failed: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def _category_label(category: str) -> str:
    return category.replace("_", " ").title()


def owner_targets(leases, clock):
    """One ExpiringLease per lease whose owner still exists."""
    owners = {}
    user_ids = {ad.user_id for ad in leases}
    if user_ids:
        owners = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}

    targets = []
    for ad in leases:
        owner = owners.get(ad.user_id)
        if owner is None:
            logger.warning("Advertisement %s has no user associated", ad.id)
            continue
        targets.append(ExpiringLease(
            advertisement_id=ad.id,
            email=owner.email,
            name=owner.display_name,
            category=_category_label(ad.category),
            expires_at=clock.localize(ad.expires_at),
        ))
    return targets


def build_warning_email(target: ExpiringLease):
    when = target.expires_at.strftime("%Y-%m-%d %H:%M %Z")
    subject = "Advertisement Expiring Soon"
    body = (
        f"Hello {target.name},\n\n"
        f"Your {target.category} advertisement (#{target.advertisement_id}) expires on {when}.\n"
        "Renew it before then to keep it visible.\n"
    )
    return subject, body


def build_expired_email(target: ExpiringLease):
    when = target.expires_at.strftime("%Y-%m-%d %H:%M %Z")
    subject = "Advertisement Expired"
    body = (
        f"Hello {target.name},\n\n"
        f"Your {target.category} advertisement (#{target.advertisement_id}) expired on {when} "
        "and is no longer visible.\n"
        "Publish it again from your profile to bring it back.\n"
    )
    return subject, body


def send_expired_notices(transport, advertisement_ids, *, sub_batch_size=5, sub_batch_delay=1.0,
                         send_timeout=30.0, sleep=time.sleep):
    """Returns (sent, failed). Each owner's send succeeds or fails on its own."""
    targets = owner_targets(advertisements.leases_by_ids(advertisement_ids), get_clock())
    if not targets:
        return 0, 0

    def send_one(target: ExpiringLease):
        subject, body = build_expired_email(target)
        return transport.send(target.email, subject, body)

    results = send_in_batches(
        targets,
        send_one,
        sub_batch_size=sub_batch_size,
        delay_seconds=sub_batch_delay,
        timeout_seconds=send_timeout,
        sleep=sleep,
    )
    sent = sum(1 for r in results if r.ok)
    return sent, len(results) - sent


class ExpiryWarningJob:
    def __init__(self, transport, *, min_hours=6, max_hours=24, batch_limit=50,
                 sub_batch_size=5, sub_batch_delay=1.0, send_timeout=30.0,
                 lock_ttl=3600, sleep=time.sleep):
        self.transport = transport
        self.min_hours = min_hours
        self.max_hours = max_hours
        self.batch_limit = batch_limit
        self.sub_batch_size = sub_batch_size
        self.sub_batch_delay = sub_batch_delay
        self.send_timeout = send_timeout
        self.lock_ttl = lock_ttl
        self.sleep = sleep

    @classmethod
    def from_config(cls, config, transport, **overrides):
        kwargs = dict(
            min_hours=int(config.get("EXPIRY_WARNING_MIN_HOURS", 6)),
            max_hours=int(config.get("EXPIRY_WARNING_MAX_HOURS", 24)),
            batch_limit=int(config.get("EXPIRY_WARNING_BATCH_LIMIT", 50)),
            sub_batch_size=int(config.get("SLOT_NOTIFY_SUB_BATCH_SIZE", 5)),
            sub_batch_delay=float(config.get("SLOT_NOTIFY_SUB_BATCH_DELAY_SECONDS", 1.0)),
            send_timeout=float(config.get("SLOT_NOTIFY_SEND_TIMEOUT_SECONDS", 30.0)),
            lock_ttl=int(config.get("JOB_LOCK_TTL_SECONDS", 3600)),
        )
        kwargs.update(overrides)
        return cls(transport, **kwargs)

    def _warn(self, clock, now, summary: WarningSummary):
        leases = advertisements.leases_expiring_between(
            now + timedelta(hours=self.min_hours),
            now + timedelta(hours=self.max_hours),
            self.batch_limit,
        )
        targets = owner_targets(leases, clock)
        summary.candidates = len(targets)

        def send_one(target: ExpiringLease):
            subject, body = build_warning_email(target)
            return self.transport.send(target.email, subject, body)

        def on_result(result):
            if result.ok:
                advertisements.mark_expiry_warned(result.item.advertisement_id, clock.now())
                summary.warned += 1
            else:
                summary.failed += 1

        send_in_batches(
            targets,
            send_one,
            sub_batch_size=self.sub_batch_size,
            delay_seconds=self.sub_batch_delay,
            timeout_seconds=self.send_timeout,
            on_result=on_result,
            sleep=self.sleep,
        )

    def run(self) -> WarningSummary:
        started = time.monotonic()
        summary = WarningSummary()
        holder = uuid.uuid4().hex
        acquired = False
        try:
            clock = get_clock()
            now = clock.now()
            acquired = job_locks.try_acquire(EXPIRY_WARNING_LOCK, holder, now, self.lock_ttl)
            if acquired:
                self._warn(clock, now, summary)
            else:
                summary.skipped = True
                logger.info("Expiry warning run already in progress; skipping")
        except Exception as exc:
            db.session.rollback()
            logger.exception("Expiry warning run failed")
            summary.success = False
            summary.error = str(exc) or exc.__class__.__name__
        finally:
            if acquired:
                release_run_lock(EXPIRY_WARNING_LOCK, holder)

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Expiry warnings finished: success=%s skipped=%s candidates=%s warned=%s failed=%s duration_ms=%s",
            summary.success, summary.skipped, summary.candidates, summary.warned, summary.failed,
            summary.duration_ms,
        )
        return summary


def release_run_lock(name: str, holder: str):
    try:
        if not job_locks.release(name, holder):
            logger.warning("Run lock %s was reclaimed before this run finished", name)
    except Exception:
        db.session.rollback()
        # the lock lapses on its own after JOB_LOCK_TTL_SECONDS
        logger.exception("Could not release run lock %s", name)
