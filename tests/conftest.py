"""Test fixtures."""

from datetime import datetime

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.service import Service
from models.user import User
from security.identity import set_role
from security.password import hash_password
from utils import clock

PASSWORD = "correct-horse-1"


@pytest.fixture
def clock_at(monkeypatch):
    """Pin the shop clock to Monday 2026-10-19 08:00; call the fixture to move it."""
    current = {"value": datetime(2026, 10, 19, 8, 0)}
    monkeypatch.setattr(clock, "now", lambda: current["value"])

    def move_to(value):
        current["value"] = value

    return move_to


@pytest.fixture
def app(clock_at):
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def _user(email, full_name, role):
    user = User(email=email, password_hash=hash_password(PASSWORD), full_name=full_name)
    db.session.add(user)
    db.session.flush()
    set_role(user.id, role)
    return user


@pytest.fixture
def users(app):
    """One actor per role plus a second customer."""
    rows = {
        "customer": _user("alice@example.com", "Alice Walker", "customer"),
        "other": _user("bob@example.com", "Bob Stone", "customer"),
        "barber": _user("carl@example.com", "Carl Fade", "barber"),
        "admin": _user("dana@example.com", "Dana Admin", "admin"),
    }
    db.session.commit()
    return {name: user.id for name, user in rows.items()}


@pytest.fixture
def services(app):
    rows = {
        "cut": Service(name="Classic Haircut", duration_minutes=30, price=250),
        "combo": Service(name="Haircut & Beard", duration_minutes=45, price=350),
        "shave": Service(name="Hot Towel Shave", duration_minutes=30, price=300),
        "retired": Service(name="Perm", duration_minutes=90, price=900, is_active=False),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return {name: s.id for name, s in rows.items()}


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(app, users):
    """Log a seeded user in; returns the client and the CSRF header to send on writes."""
    def _login(email):
        c = app.test_client()
        resp = c.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        token = c.get_cookie(app.config["CSRF_COOKIE_NAME"]).value
        return c, {app.config["CSRF_HEADER_NAME"]: token}
    return _login
