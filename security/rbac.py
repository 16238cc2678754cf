import logging
from functools import wraps
from flask import g, jsonify, request

from utils.audit import log_event

logger = logging.getLogger(__name__)

ROLE_ADMIN = "ADMIN"
# advertisement owners need only a login; ADMIN gates the job triggers
ALL_ROLES = (ROLE_ADMIN,)


def role_names(user) -> set:
    if not user:
        return set()
    return {r.name for r in user.roles}


def require_roles(*allowed: str):
    """
    Usage: @require_roles(ROLE_ADMIN)
    Denied calls are audited so job triggers by non-admins show up in audit_logs.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not role_names(user).intersection(allowed):
                logger.warning("User %s denied %s %s", user.id, request.method, request.path)
                log_event("ACCESS_DENIED", user_id=user.id, entity="route", entity_id=request.path,
                          metadata={"required": list(allowed)})
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
