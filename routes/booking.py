from flask import Blueprint, request, jsonify, g

from engine import lifecycle, reports
from engine.errors import Forbidden, ValidationError
from engine.store import get_visible_booking, list_visible_bookings
from routes.common import booking_json, day_arg, optional_int, parse_datetime_field
from security import policy
from security.rbac import require_roles
from utils import clock
from utils.auth_context import login_required
from utils.roles import ROLE_ADMIN, ROLE_BARBER, ROLE_CUSTOMER, is_staff

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _status_arg():
    status = request.args.get("status")
    if status and not policy.is_known_status(status):
        raise ValidationError("Unknown status filter")
    return status or None


# ---------- CUSTOMERS (and staff for walk-ins): reserve ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    service_id = optional_int(data, "service_id")
    if service_id is None:
        return jsonify(error="service_id required", code="validation_error"), 400
    scheduled_time = parse_datetime_field(data.get("scheduled_time"))

    customer_id = g.user.id
    if is_staff(g.role):
        customer_id = optional_int(data, "customer_id") or g.user.id
    elif data.get("customer_id") not in (None, g.user.id):
        raise Forbidden("Customers can only book for themselves")

    barber_id = optional_int(data, "barber_id")
    target = policy.BookingRef(customer_id=customer_id, barber_id=barber_id, status="pending")
    if not policy.is_allowed(g.role, g.user.id, target, policy.OP_CREATE):
        raise Forbidden("You cannot create this booking")

    booking = lifecycle.create_booking(
        customer_id=customer_id,
        service_id=service_id,
        scheduled_time=scheduled_time,
        notes=data.get("notes"),
        barber_id=barber_id,
        acting_actor_id=g.user.id,
    )
    return jsonify(booking_json(booking)), 201


# ---------- ALL ROLES: status changes (policy decides who may do what) ----------
@booking_bp.post("/<int:booking_id>/status")
@login_required
def change_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().lower()
    if not status:
        return jsonify(error="status required", code="validation_error"), 400

    booking = lifecycle.transition_booking(
        booking_id, status, g.user.id, expected_version=optional_int(data, "expected_version"),
    )
    return jsonify(booking_json(booking)), 200


@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = lifecycle.transition_booking(
        booking_id, "cancelled", g.user.id, expected_version=optional_int(data, "expected_version"),
    )
    return jsonify(booking_json(booking)), 200


@booking_bp.post("/<int:booking_id>/reschedule")
@login_required
def reschedule_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    raw_time = data.get("scheduled_time")
    notes = data.get("notes")
    if not raw_time and notes is None:
        return jsonify(error="scheduled_time or notes required", code="validation_error"), 400

    new_time = parse_datetime_field(raw_time) if raw_time else None
    booking = lifecycle.reschedule_booking(
        booking_id,
        new_time,
        g.user.id,
        new_notes=notes,
        expected_version=optional_int(data, "expected_version"),
    )
    return jsonify(booking_json(booking)), 200


# ---------- reads ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    when = request.args.get("when")  # upcoming | past
    upcoming = {"upcoming": True, "past": False}.get(when)
    # personal view: bookings the caller reserved, whatever their role
    rows = list_visible_bookings(g.user.id, ROLE_CUSTOMER, status=_status_arg(), upcoming=upcoming)
    return jsonify([booking_json(b) for b in rows]), 200


@booking_bp.get("")
@require_roles(ROLE_BARBER, ROLE_ADMIN)
def list_bookings():
    day = day_arg() if request.args.get("date") else None
    rows = list_visible_bookings(g.user.id, g.role, status=_status_arg(), day=day)
    return jsonify([booking_json(b) for b in rows]), 200


@booking_bp.get("/today-stats")
@require_roles(ROLE_BARBER, ROLE_ADMIN)
def today_stats():
    barber_id = g.user.id
    if g.role == ROLE_ADMIN:
        barber_id = request.args.get("barber_id", type=int) or g.user.id
    return jsonify(reports.barber_day_stats(barber_id, clock.today())), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = get_visible_booking(booking_id, g.user.id, g.role)
    return jsonify(booking_json(booking)), 200
