"""Process-wide logging configuration."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, (level_name or "INFO").strip().upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Flask reloader / repeated create_app calls must not stack handlers
    if any(getattr(h, "_slot_service_handler", False) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler._slot_service_handler = True
    root_logger.addHandler(handler)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
