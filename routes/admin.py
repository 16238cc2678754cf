from flask import Blueprint, jsonify, g, current_app
from security.rbac import ROLE_ADMIN, require_roles
from utils.audit import log_event
from jobs.scheduler import (
    EXPIRY_WARNING_JOB_ID,
    RECONCILE_JOB_ID,
    build_expiry_warning_job,
    build_reconcile_job,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _run_status(summary) -> int:
    if summary.skipped:
        return 409  # another run holds the job lock
    return 200 if summary.success else 500


# ---------- ADMIN: run a reconciliation cycle now ----------
@admin_bp.post("/jobs/reconcile")
@require_roles(ROLE_ADMIN)
def trigger_reconcile():
    log_event("RECONCILE_MANUAL_TRIGGER", user_id=g.user.id, entity="job", entity_id=RECONCILE_JOB_ID)
    summary = build_reconcile_job(current_app._get_current_object()).run()
    return jsonify(summary.to_dict()), _run_status(summary)


@admin_bp.post("/jobs/expiry-warnings")
@require_roles(ROLE_ADMIN)
def trigger_expiry_warnings():
    log_event("EXPIRY_WARNING_MANUAL_TRIGGER", user_id=g.user.id, entity="job", entity_id=EXPIRY_WARNING_JOB_ID)
    summary = build_expiry_warning_job(current_app._get_current_object()).run()
    return jsonify(summary.to_dict()), _run_status(summary)


@admin_bp.get("/jobs")
@require_roles(ROLE_ADMIN)
def list_jobs():
    scheduler = current_app.extensions.get("job_scheduler")
    if scheduler is None or not scheduler.running:
        return jsonify(running=False, jobs=[]), 200

    jobs = []
    for job_id in (RECONCILE_JOB_ID, EXPIRY_WARNING_JOB_ID):
        job = scheduler.get_job(job_id)
        if job is not None:
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            })
    return jsonify(running=True, jobs=jobs), 200
