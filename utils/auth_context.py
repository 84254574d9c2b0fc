from functools import wraps
from flask import g, jsonify
from models import db
from models.user import User
from security.identity import role_of
from security.session import get_session_from_request


def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        g.role = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)
    # looked up on every request so a role change applies immediately
    g.role = role_of(sess.user_id) if g.user else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required", code="unauthenticated"), 401
        return fn(*args, **kwargs)
    return wrapper
