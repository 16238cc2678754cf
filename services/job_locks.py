"""
Run locks for background jobs.

The scheduler's max_instances only covers one job id in one process. The
admin trigger, the CLI command, the start-up run and other processes share
this table instead: a run proceeds only if its conditional UPDATE claimed
the row.
"""

from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.job_lock import JobLock


def _ensure_row(name: str):
    if db.session.get(JobLock, name) is not None:
        return
    db.session.add(JobLock(name=name))
    try:
        db.session.commit()
    except IntegrityError:
        # created by a concurrent caller
        db.session.rollback()


def try_acquire(name: str, holder: str, now, ttl_seconds: int) -> bool:
    """True when `holder` now owns the lock. False while another run holds it."""
    _ensure_row(name)
    changed = (
        JobLock.query
        .filter(
            JobLock.name == name,
            or_(JobLock.locked_until.is_(None), JobLock.locked_until <= now),
        )
        .update(
            {
                JobLock.holder: holder,
                JobLock.acquired_at: now,
                JobLock.locked_until: now + timedelta(seconds=ttl_seconds),
            },
            synchronize_session=False,
        )
    )
    db.session.commit()
    return changed > 0


def release(name: str, holder: str) -> bool:
    """Returns False when the lock was already reclaimed by someone else."""
    changed = (
        JobLock.query
        .filter_by(name=name, holder=holder)
        .update({JobLock.holder: None, JobLock.locked_until: None}, synchronize_session=False)
    )
    db.session.commit()
    return changed > 0
