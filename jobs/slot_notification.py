"""
Home-banner reconciliation and "slot available" dispatch.

One run = Phase A (sweep) then Phase B (dispatch), under the store-level
run lock so overlapping triggers never email the same request twice:
  A. expire lapsed leases of every category and tell their owners, then
     release active banner positions whose lease has lapsed. A single bad
     position is logged and skipped, never fatal.
  B. only when at least one position is free: pull the oldest pending
     notification requests and email them in throttled sub-batches,
     marking each request delivered only after its own send succeeded.
     Failed sends stay pending and are retried by the next run.
"""

import html
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from models import db
from models.home_banner_slot import HomeBannerSlot
from services import advertisements, job_locks, notification_queue, slot_pool
from jobs.dispatcher import send_in_batches
from jobs.expiry_warning import release_run_lock, send_expired_notices
from utils.audit import log_event
from utils.clock import get_clock

logger = logging.getLogger(__name__)

RECONCILE_LOCK = "slot_reconcile"

DEFAULT_BATCH_LIMIT = 50
DEFAULT_SUB_BATCH_SIZE = 5
DEFAULT_SUB_BATCH_DELAY_SECONDS = 1.0
DEFAULT_SEND_TIMEOUT_SECONDS = 30.0
DEFAULT_LOCK_TTL_SECONDS = 3600


@dataclass
class Recipient:
    entry_id: int
    user_id: int
    email: str
    name: str


@dataclass
class ReconcileSummary:
    success: bool = True
    skipped: bool = False
    expired_leases: int = 0
    expiry_notices: int = 0
    expiry_notice_failures: int = 0
    released: int = 0
    free_slots: int = 0
    notified: int = 0
    failed: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def build_availability_email(name: str, free_slots: int, total_slots: int, frontend_url: str):
    plural = "slots are" if free_slots != 1 else "slot is"
    link = f"{frontend_url.rstrip('/')}/profile?section=advertisements"
    subject = "Home Banner Slot Available"

    text = (
        f"Hello {name},\n\n"
        f"Good news! {free_slots} home banner {plural} now available "
        f"({free_slots} out of {total_slots}).\n\n"
        f"Publish your home banner advertisement here: {link}\n\n"
        "Slots are allocated on a first-come, first-served basis.\n"
        "You received this email because you asked to be notified when a "
        "home banner slot becomes available.\n"
    )
    body = (
        f"<p>Hello {html.escape(name)},</p>"
        f"<p>Good news! <strong>{free_slots} home banner {plural} now available</strong>.</p>"
        f"<p><strong>{free_slots} out of {total_slots} slots available</strong></p>"
        f'<p><a href="{html.escape(link)}">Publish My Banner Now</a></p>'
        "<p><em>Slots are allocated on a first-come, first-served basis.</em></p>"
    )
    return subject, text, body


class SlotNotificationJob:
    def __init__(self, transport, *, batch_limit=DEFAULT_BATCH_LIMIT,
                 sub_batch_size=DEFAULT_SUB_BATCH_SIZE,
                 sub_batch_delay=DEFAULT_SUB_BATCH_DELAY_SECONDS,
                 send_timeout=DEFAULT_SEND_TIMEOUT_SECONDS,
                 frontend_url="http://localhost:3000",
                 lock_ttl=DEFAULT_LOCK_TTL_SECONDS,
                 sleep=time.sleep):
        self.transport = transport
        self.batch_limit = batch_limit
        self.sub_batch_size = sub_batch_size
        self.sub_batch_delay = sub_batch_delay
        self.send_timeout = send_timeout
        self.frontend_url = frontend_url
        self.lock_ttl = lock_ttl
        self.sleep = sleep

    @classmethod
    def from_config(cls, config, transport, **overrides):
        kwargs = dict(
            batch_limit=int(config.get("SLOT_NOTIFY_BATCH_LIMIT", DEFAULT_BATCH_LIMIT)),
            sub_batch_size=int(config.get("SLOT_NOTIFY_SUB_BATCH_SIZE", DEFAULT_SUB_BATCH_SIZE)),
            sub_batch_delay=float(config.get("SLOT_NOTIFY_SUB_BATCH_DELAY_SECONDS", DEFAULT_SUB_BATCH_DELAY_SECONDS)),
            send_timeout=float(config.get("SLOT_NOTIFY_SEND_TIMEOUT_SECONDS", DEFAULT_SEND_TIMEOUT_SECONDS)),
            frontend_url=config.get("FRONTEND_URL") or "http://localhost:3000",
            lock_ttl=int(config.get("JOB_LOCK_TTL_SECONDS", DEFAULT_LOCK_TTL_SECONDS)),
        )
        kwargs.update(overrides)
        return cls(transport, **kwargs)

    # ---------- Phase A ----------
    def sweep(self, now):
        """Returns (expired_lease_ids, released_positions)."""
        expired_ids = advertisements.expire_due_leases(now)

        released = 0
        active = [(s.id, s.position) for s in HomeBannerSlot.query.filter_by(is_active=True).all()]
        for slot_id, position in active:
            try:
                slot = db.session.get(HomeBannerSlot, slot_id)
                if slot is None or not slot.is_active:
                    continue
                if not slot_pool.is_occupant_expired(slot, now):
                    continue
                released_now = slot_pool.release_slot(slot_id, now)
            except Exception:
                db.session.rollback()
                logger.exception("Failed to release home banner position %s (slot %s)", position, slot_id)
                continue

            if not released_now:
                continue
            released += 1
            try:
                log_event(
                    "SLOT_RELEASE",
                    user_id=None,
                    entity="home_banner_slot",
                    entity_id=slot_id,
                    metadata={"position": position, "reason": "expired"},
                )
            except Exception:
                db.session.rollback()
                logger.exception("Released home banner position %s (slot %s) but could not audit it", position, slot_id)

        return expired_ids, released

    def notify_expired(self, advertisement_ids):
        """Returns (sent, failed)."""
        return send_expired_notices(
            self.transport,
            advertisement_ids,
            sub_batch_size=self.sub_batch_size,
            sub_batch_delay=self.sub_batch_delay,
            send_timeout=self.send_timeout,
            sleep=self.sleep,
        )

    # ---------- Phase B ----------
    def dispatch(self, free_slots: int):
        """Returns (notified, failed)."""
        entries = notification_queue.dequeue(self.batch_limit)
        if not entries:
            logger.info("No pending slot notification requests")
            return 0, 0

        recipients = [
            Recipient(
                entry_id=e.id,
                user_id=e.user_id,
                email=e.email,
                name=e.user.display_name if e.user else "Valued User",
            )
            for e in entries
        ]
        total = slot_pool.slot_count()
        clock = get_clock()

        def send_one(recipient: Recipient):
            subject, text, body = build_availability_email(
                recipient.name, free_slots, total, self.frontend_url
            )
            return self.transport.send(recipient.email, subject, text, html=body)

        notified = 0
        failed = 0

        def on_result(result):
            nonlocal notified, failed
            if result.ok:
                notification_queue.mark_delivered(result.item.entry_id, clock.now())
                notified += 1
            else:
                failed += 1

        send_in_batches(
            recipients,
            send_one,
            sub_batch_size=self.sub_batch_size,
            delay_seconds=self.sub_batch_delay,
            timeout_seconds=self.send_timeout,
            on_result=on_result,
            sleep=self.sleep,
        )
        return notified, failed

    def _reconcile(self, now, summary: ReconcileSummary):
        expired_ids, summary.released = self.sweep(now)
        summary.expired_leases = len(expired_ids)
        if expired_ids:
            try:
                summary.expiry_notices, summary.expiry_notice_failures = self.notify_expired(expired_ids)
            except Exception:
                db.session.rollback()
                summary.expiry_notice_failures = len(expired_ids)
                logger.exception("Could not send expired notices for %s leases", len(expired_ids))

        summary.free_slots = slot_pool.count_free(now)
        if summary.free_slots == 0:
            logger.info("No available home banner slots; skipping notifications")
        else:
            summary.notified, summary.failed = self.dispatch(summary.free_slots)

    def run(self) -> ReconcileSummary:
        """One full cycle. Never raises: a run-level failure is reported in the summary."""
        started = time.monotonic()
        summary = ReconcileSummary()
        holder = uuid.uuid4().hex
        acquired = False
        try:
            now = get_clock().now()
            acquired = job_locks.try_acquire(RECONCILE_LOCK, holder, now, self.lock_ttl)
            if acquired:
                self._reconcile(now, summary)
            else:
                summary.skipped = True
                logger.info("Slot reconciliation already in progress; skipping")
        except Exception as exc:
            db.session.rollback()
            logger.exception("Slot reconciliation run failed")
            summary.success = False
            summary.error = str(exc) or exc.__class__.__name__
        finally:
            if acquired:
                release_run_lock(RECONCILE_LOCK, holder)

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Slot reconciliation finished: success=%s skipped=%s expired=%s expiry_notices=%s released=%s "
            "free=%s notified=%s failed=%s duration_ms=%s",
            summary.success,
            summary.skipped,
            summary.expired_leases,
            summary.expiry_notices,
            summary.released,
            summary.free_slots,
            summary.notified,
            summary.failed,
            summary.duration_ms,
        )
        return summary
