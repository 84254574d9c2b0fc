"""
Cookie sessions. The browser holds a random token; the database holds its sha256.

Queue screens poll and stream, so ``last_seen_at`` is only written when it is older
than ``SESSION_TOUCH_INTERVAL_SECONDS``.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import LoginSession


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _setting(name, default):
    return current_app.config.get(name, default)


def cookie_name() -> str:
    return _setting("AUTH_COOKIE_NAME", "barberqueue_session")


def _client_info():
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    return ip, (request.headers.get("User-Agent") or "")[:255]


def create_session(user_id: int) -> str:
    """Returns the raw token to set as the cookie."""
    raw_token = secrets.token_urlsafe(32)
    ip, user_agent = _client_info()

    db.session.add(LoginSession(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=_setting("SESSION_LIFETIME_SECONDS", 28800)),
        ip=ip,
        user_agent=user_agent,
    ))
    db.session.commit()
    return raw_token


def _find(raw_token, live_only=True):
    if not raw_token:
        return None
    q = LoginSession.query.filter_by(token_hash=_hash_token(raw_token))
    if live_only:
        q = q.filter_by(revoked=False)
    return q.first()


def get_session_from_request():
    sess = _find(request.cookies.get(cookie_name()))
    if sess is None:
        return None

    now = datetime.utcnow()
    if not sess.is_live(now, _setting("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    touch_every = timedelta(seconds=_setting("SESSION_TOUCH_INTERVAL_SECONDS", 60))
    if sess.last_seen_at is None or now - sess.last_seen_at >= touch_every:
        sess.last_seen_at = now
        db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    sess = _find(raw_token, live_only=False)
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int) -> int:
    """Login rotates: every earlier session of the user stops working."""
    revoked = (
        LoginSession.query
        .filter_by(user_id=user_id, revoked=False)
        .update({LoginSession.revoked: True}, synchronize_session=False)
    )
    db.session.commit()
    return revoked
