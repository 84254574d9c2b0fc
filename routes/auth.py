from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.identity import set_role
from security.password import hash_password, verify_password
from security.session import cookie_name, create_session, revoke_session, revoke_all_sessions
from security.csrf import issue_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required
from utils.roles import ROLE_CUSTOMER

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _clean_profile_field(data, name, max_len):
    value = data.get(name)
    if value is None:
        return None, None
    if not isinstance(value, str) or len(value.strip()) > max_len:
        return None, f"Invalid {name}"
    return value.strip(), None


def _user_json(user: User, role: str):
    return {
        "id": user.id,
        "email": user.email,
        "role": role,
        "full_name": user.full_name,
        "phone_number": user.phone_number,
    }


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    min_len = current_app.config.get("MIN_PASSWORD_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_len:
        return jsonify(error=f"Password must be at least {min_len} characters"), 400

    full_name, err = _clean_profile_field(data, "full_name", 120)
    if err:
        return jsonify(error=err), 400
    phone_number, err = _clean_profile_field(data, "phone_number", 30)
    if err:
        return jsonify(error=err), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email}, commit=True)
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name, phone_number=phone_number)
    db.session.add(user)
    db.session.flush()
    set_role(user.id, ROLE_CUSTOMER)
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id, commit=True)
    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email}, commit=True)
        return jsonify(error="Invalid credentials"), 401

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK")
    resp.set_cookie(
        cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count}, commit=True)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_json(g.user, g.role)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    name = cookie_name()
    revoke_session(request.cookies.get(name))
    log_event("LOGOUT", user_id=g.user.id, commit=True)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(name, path="/")
    return resp, 200


@auth_bp.post("/profile")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}

    full_name, err = _clean_profile_field(data, "full_name", 120)
    if err:
        return jsonify(error=err), 400
    phone_number, err = _clean_profile_field(data, "phone_number", 30)
    if err:
        return jsonify(error=err), 400

    if full_name is not None:
        g.user.full_name = full_name
    if phone_number is not None:
        g.user.phone_number = phone_number

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=g.user.id, commit=True)
    return jsonify(message="Profile updated", user=_user_json(g.user, g.role)), 200
