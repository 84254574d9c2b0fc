from flask import Blueprint, jsonify, g, request

from engine import lifecycle, reports
from engine.errors import NotFound, ValidationError
from models import db
from models.audit_log import AuditLog
from models.user import User, UserRole
from routes.common import booking_json, optional_int, parse_datetime_field
from security.identity import role_of, set_role
from security.rbac import require_roles
from utils.audit import log_event
from utils.roles import ROLE_ADMIN, ROLE_CUSTOMER, normalize_role

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/users")
@require_roles(ROLE_ADMIN)
def list_users():
    role_filter = normalize_role(request.args.get("role"))
    rows = (
        db.session.query(User, UserRole.role)
        .outerjoin(UserRole, UserRole.user_id == User.id)
        .order_by(User.full_name.asc(), User.id.asc())
        .limit(500)
        .all()
    )
    out = []
    for user, role in rows:
        role = role or ROLE_CUSTOMER
        if role_filter and role != role_filter:
            continue
        out.append({
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "phone_number": user.phone_number,
            "role": role,
            "created_at": user.created_at.isoformat(),
        })
    return jsonify(out), 200


@admin_bp.put("/users/<int:user_id>/role")
@require_roles(ROLE_ADMIN)
def update_user_role(user_id: int):
    data = request.get_json(silent=True) or {}
    role = normalize_role(data.get("role"))
    if role is None:
        return jsonify(error="role must be one of customer, barber, admin", code="validation_error"), 400

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    if user.id == g.user.id and role != ROLE_ADMIN:
        return jsonify(error="Admins cannot demote themselves", code="validation_error"), 400

    previous = role_of(user.id)
    set_role(user.id, role)
    log_event("USER_ROLE_UPDATE", user_id=g.user.id, entity="user", entity_id=user.id, metadata={"from": previous, "to": role})
    db.session.commit()
    return jsonify(id=user.id, role=role), 200


@admin_bp.post("/bookings/<int:booking_id>/reassign")
@require_roles(ROLE_ADMIN)
def reassign_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    kwargs = {}
    if "customer_id" in data:
        customer_id = optional_int(data, "customer_id")
        if customer_id is None:
            raise ValidationError("customer_id cannot be null")
        kwargs["customer_id"] = customer_id
    if "barber_id" in data:
        kwargs["barber_id"] = optional_int(data, "barber_id")
    if "service_id" in data:
        kwargs["service_id"] = optional_int(data, "service_id")
    if data.get("scheduled_time"):
        kwargs["scheduled_time"] = parse_datetime_field(data.get("scheduled_time"))
    if not kwargs:
        return jsonify(error="Nothing to change", code="validation_error"), 400

    booking = lifecycle.reassign_booking(
        booking_id, g.user.id, expected_version=optional_int(data, "expected_version"), **kwargs
    )
    return jsonify(booking_json(booking)), 200


@admin_bp.get("/stats")
@require_roles(ROLE_ADMIN)
def stats():
    return jsonify(reports.booking_counts_by_status()), 200


@admin_bp.get("/audit-logs")
@require_roles(ROLE_ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    entity_id = request.args.get("booking_id")
    if entity_id:
        q = q.filter(AuditLog.entity == "booking", AuditLog.entity_id == entity_id)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": r.timestamp.isoformat(),
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "user_agent": r.user_agent,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
