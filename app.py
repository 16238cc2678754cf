import click
from flask import Flask, current_app
from config import Config
from routes import health_bp, advertisements_bp, home_banner_bp, admin_bp

from models import db
from models.user import User
from flask_migrate import Migrate
from utils.seed import grant_role, seed_roles
from security.rbac import ROLE_ADMIN
from utils.auth_context import load_current_user
from utils.clock import ReferenceClock
from utils.emailer import SmtpTransport
from utils.logging_setup import configure_logging
from jobs.scheduler import JobScheduler, build_reconcile_job


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Collaborators shared by request handlers and background jobs
    app.extensions["reference_clock"] = ReferenceClock(app.config["REFERENCE_TIMEZONE"])
    app.extensions["notification_transport"] = SmtpTransport.from_config(app.config)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(advertisements_bp)
    app.register_blueprint(home_banner_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_STARTUP"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    scheduler = JobScheduler(app)
    if app.config.get("SCHEDULER_ENABLED", True):
        scheduler.start()

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Grant ADMIN to a user by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            print("User not found")
            return

        if grant_role(user, ROLE_ADMIN):
            print(f"{user.email} promoted to ADMIN")
        else:
            print(f"{user.email} is already ADMIN")

    @app.cli.command("reconcile-slots")
    def reconcile_slots():
        """Run one home banner reconciliation cycle now."""
        summary = build_reconcile_job(current_app._get_current_object()).run()
        print(
            f"success={summary.success} expired={summary.expired_leases} "
            f"expiry_notices={summary.expiry_notices} released={summary.released} "
            f"free={summary.free_slots} notified={summary.notified} failed={summary.failed} "
            f"duration_ms={summary.duration_ms}"
        )
        if summary.skipped:
            print("skipped: another reconciliation run holds the lock")
        if summary.error:
            print(f"error: {summary.error}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002, use_reloader=False)
