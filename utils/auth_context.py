from functools import wraps
from flask import g, jsonify, request, current_app
from models import db
from models.user import User

def load_current_user():
    # Identity is asserted by the upstream gateway; this service never sees credentials
    header = current_app.config.get("USER_ID_HEADER", "X-User-Id")
    raw_id = (request.headers.get(header) or "").strip()
    if not raw_id.isdigit():
        g.user = None
        return
    g.user = db.session.get(User, int(raw_id))

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
