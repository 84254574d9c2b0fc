"""Flask CLI commands."""

from datetime import datetime

from engine import lifecycle
from models import db
from models.booking import Booking
from models.service import Service
from security.identity import role_of
from utils.seed import DEFAULT_SERVICES


def test_seed_services_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["seed-services"])
    second = runner.invoke(args=["seed-services"])

    assert f"{len(DEFAULT_SERVICES)} service(s) added" in first.output
    assert "0 service(s) added" in second.output
    assert Service.query.count() == len(DEFAULT_SERVICES)


def test_set_role_and_make_admin(app, users):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["set-role", "BOB@example.com", "barber"])
    assert "bob@example.com is now barber" in result.output
    assert role_of(users["other"]) == "barber"

    runner.invoke(args=["make-admin", "alice@example.com"])
    assert role_of(users["customer"]) == "admin"


def test_set_role_rejects_unknown_role(app, users):
    result = app.test_cli_runner().invoke(args=["set-role", "bob@example.com", "owner"])
    assert result.exit_code != 0
    assert role_of(users["other"]) == "customer"


def test_unknown_user(app):
    assert "User not found" in app.test_cli_runner().invoke(args=["make-admin", "ghost@example.com"]).output


def test_queue_rollover(app, users, services, clock_at):
    booking = lifecycle.create_booking(users["customer"], services["cut"], datetime(2026, 10, 19, 9, 0))
    clock_at(datetime(2026, 10, 20, 7, 0))

    result = app.test_cli_runner().invoke(args=["queue-rollover"])

    assert "Cleared 1 stale queue number(s)" in result.output
    assert db.session.get(Booking, booking.id).queue_number is None
