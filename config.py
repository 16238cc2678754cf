import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to this file as slots.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "slots.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Dev convenience; production schema comes from migrations/
    CREATE_TABLES_ON_STARTUP = os.getenv("CREATE_TABLES_ON_STARTUP", "false").lower() == "true"

    # Identity header set by the upstream auth gateway
    USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-User-Id")

    # All expiration math is anchored to this zone, never the host's
    REFERENCE_TIMEZONE = os.getenv("REFERENCE_TIMEZONE", "Asia/Colombo")

    # Home banner pool
    HOME_BANNER_SLOT_COUNT = int(os.getenv("HOME_BANNER_SLOT_COUNT", "6"))

    # Slot-available notification dispatch
    SLOT_NOTIFY_BATCH_LIMIT = int(os.getenv("SLOT_NOTIFY_BATCH_LIMIT", "50"))      # pulled per run
    SLOT_NOTIFY_SUB_BATCH_SIZE = int(os.getenv("SLOT_NOTIFY_SUB_BATCH_SIZE", "5"))  # sent concurrently
    SLOT_NOTIFY_SUB_BATCH_DELAY_SECONDS = float(os.getenv("SLOT_NOTIFY_SUB_BATCH_DELAY_SECONDS", "1.0"))
    SLOT_NOTIFY_SEND_TIMEOUT_SECONDS = float(os.getenv("SLOT_NOTIFY_SEND_TIMEOUT_SECONDS", "30"))

    # Scheduler
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    RECONCILE_CRON_MINUTE = os.getenv("RECONCILE_CRON_MINUTE", "0")   # hourly, on the hour
    RECONCILE_STARTUP_DELAY_SECONDS = int(os.getenv("RECONCILE_STARTUP_DELAY_SECONDS", "5"))
    EXPIRY_WARNING_CRON_HOUR = os.getenv("EXPIRY_WARNING_CRON_HOUR", "*/6")
    EXPIRY_WARNING_MIN_HOURS = int(os.getenv("EXPIRY_WARNING_MIN_HOURS", "6"))
    EXPIRY_WARNING_MAX_HOURS = int(os.getenv("EXPIRY_WARNING_MAX_HOURS", "24"))
    EXPIRY_WARNING_BATCH_LIMIT = int(os.getenv("EXPIRY_WARNING_BATCH_LIMIT", "50"))
    # A run that crashed without unlocking is reclaimable after this long
    JOB_LOCK_TTL_SECONDS = int(os.getenv("JOB_LOCK_TTL_SECONDS", "3600"))

    # Link placed in notification emails
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
