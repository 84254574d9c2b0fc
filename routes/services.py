from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from engine import catalog
from engine.store import unit_of_work
from models import db
from models.service import Service
from routes.common import day_arg
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils import clock
from utils.roles import ROLE_ADMIN

services_bp = Blueprint("services", __name__, url_prefix="/services")


def _service_json(s: Service):
    return {
        "id": s.id,
        "name": s.name,
        "description": s.description,
        "duration_minutes": s.duration_minutes,
        "price": s.price,
        "is_active": s.is_active,
    }


def _read_fields(data, partial=False):
    """Returns (fields, error)."""
    fields = {}
    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name or len(name) > 120:
            return None, "name is required (max 120 chars)"
        fields["name"] = name
    if "description" in data:
        fields["description"] = (data.get("description") or "").strip() or None
    for key, minimum in (("duration_minutes", 1), ("price", 0)):
        if key in data or not partial:
            try:
                value = int(data.get(key))
            except (TypeError, ValueError):
                return None, f"{key} must be an integer"
            if value < minimum:
                return None, f"{key} must be >= {minimum}"
            fields[key] = value
    if "is_active" in data:
        fields["is_active"] = bool(data.get("is_active"))
    return fields, None


@services_bp.get("")
def list_services():
    include_inactive = request.args.get("all") == "1" and getattr(g, "role", None) == ROLE_ADMIN
    return jsonify([_service_json(s) for s in catalog.list_services(include_inactive=include_inactive)]), 200


@services_bp.get("/slots")
@login_required
def list_slots():
    day = day_arg()
    return jsonify(
        date=day.isoformat(),
        slots=[slot.isoformat() for slot in catalog.offered_slots(day)],
    ), 200


@services_bp.post("")
@require_roles(ROLE_ADMIN)
def create_service():
    data = request.get_json(silent=True) or {}
    fields, error = _read_fields(data)
    if error:
        return jsonify(error=error), 400

    service = Service(**fields)
    db.session.add(service)
    try:
        db.session.flush()
        log_event("SERVICE_CREATE", user_id=g.user.id, entity="service", entity_id=service.id)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Service name already exists"), 409

    return jsonify(_service_json(service)), 201


@services_bp.patch("/<int:service_id>")
@require_roles(ROLE_ADMIN)
def update_service(service_id: int):
    service = catalog.get_service(service_id)
    data = request.get_json(silent=True) or {}
    fields, error = _read_fields(data, partial=True)
    if error:
        return jsonify(error=error), 400

    if "name" in fields and Service.query.filter(Service.name == fields["name"], Service.id != service.id).first():
        return jsonify(error="Service name already exists"), 409

    duration_changed = fields.get("duration_minutes", service.duration_minutes) != service.duration_minutes
    today = clock.today()
    with unit_of_work([today]) as uow:
        for key, value in fields.items():
            setattr(service, key, value)
        log_event("SERVICE_UPDATE", user_id=g.user.id, entity="service", entity_id=service.id, metadata=fields)
        # today's wait estimates are sums of durations
        uow.touch(today, rerank=duration_changed, reason="catalog")

    return jsonify(_service_json(service)), 200
