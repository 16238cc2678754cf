from models.db import db, UTCDateTime


class JobLock(db.Model):
    """One row per background job; a run holds it until locked_until."""

    __tablename__ = "job_locks"

    name = db.Column(db.String(80), primary_key=True)
    holder = db.Column(db.String(64), nullable=True)  # random token of the run holding it
    acquired_at = db.Column(UTCDateTime(), nullable=True)
    locked_until = db.Column(UTCDateTime(), nullable=True)  # stale after a crash; reclaimable past this
