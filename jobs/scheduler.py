"""
Background job scheduler.

Owned by create_app(): constructed once, started at process start-up and
shut down at exit. No module-level scheduler state.
"""

import atexit
import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from jobs.expiry_warning import ExpiryWarningJob
from jobs.slot_notification import SlotNotificationJob

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "slot_reconcile"
RECONCILE_STARTUP_JOB_ID = "slot_reconcile_startup"
EXPIRY_WARNING_JOB_ID = "advertisement_expiry_warning"


def build_reconcile_job(app, **overrides) -> SlotNotificationJob:
    return SlotNotificationJob.from_config(app.config, app.extensions["notification_transport"], **overrides)


def build_expiry_warning_job(app, **overrides) -> ExpiryWarningJob:
    return ExpiryWarningJob.from_config(app.config, app.extensions["notification_transport"], **overrides)


class JobScheduler:
    def __init__(self, app=None):
        self.app = None
        self._scheduler = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions["job_scheduler"] = self

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            return

        config = self.app.config
        tz = ZoneInfo(config.get("REFERENCE_TIMEZONE", "Asia/Colombo"))
        scheduler = BackgroundScheduler(timezone=tz)

        # max_instances=1: a tick that finds the previous run still going is skipped, not stacked
        scheduler.add_job(
            self.run_reconcile,
            trigger=CronTrigger(minute=config.get("RECONCILE_CRON_MINUTE", "0"), timezone=tz),
            id=RECONCILE_JOB_ID,
            name="Home banner reconciliation (hourly)",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
            replace_existing=True,
        )
        scheduler.add_job(
            self.run_expiry_warning,
            trigger=CronTrigger(hour=config.get("EXPIRY_WARNING_CRON_HOUR", "*/6"), minute=0, timezone=tz),
            id=EXPIRY_WARNING_JOB_ID,
            name="Advertisement expiry warnings",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=1800,
            replace_existing=True,
        )
        startup_delay = int(config.get("RECONCILE_STARTUP_DELAY_SECONDS", 5))
        if startup_delay >= 0:
            scheduler.add_job(
                self.run_reconcile,
                trigger="date",
                run_date=datetime.now(tz) + timedelta(seconds=startup_delay),
                id=RECONCILE_STARTUP_JOB_ID,
                name="Home banner reconciliation (start-up)",
                replace_existing=True,
            )

        scheduler.start()
        self._scheduler = scheduler
        atexit.register(self.shutdown)
        logger.info("Job scheduler started (tz=%s)", tz.key)

    def shutdown(self, wait: bool = False):
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Job scheduler stopped")

    def get_job(self, job_id):
        if self._scheduler is None:
            return None
        return self._scheduler.get_job(job_id)

    def run_reconcile(self):
        # Job functions must not raise into the scheduler; the next tick has to fire regardless
        try:
            with self.app.app_context():
                return build_reconcile_job(self.app).run()
        except Exception:
            logger.exception("Reconciliation tick crashed")
            return None

    def run_expiry_warning(self):
        try:
            with self.app.app_context():
                return build_expiry_warning_job(self.app).run()
        except Exception:
            logger.exception("Expiry warning tick crashed")
            return None
