import logging

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate

import engine
from config import Config
from engine.errors import BookingError
from models import db
from routes import health_bp, auth_bp, services_bp, booking_bp, queue_bp, admin_bp
from security.csrf import require_csrf
from utils.auth_context import load_current_user

CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/health",
}


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(queue_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Change notifier + per-day ranking locks
    engine.init_app(app)

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
from models.user import User
from security.identity import set_role
from utils.roles import ALLOWED_ROLES


def register_cli(app):
    def _set_role(email, role):
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return False
        set_role(user.id, role)
        db.session.commit()
        click.echo(f"{user.email} is now {role}")
        return True

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to admin by email (bootstrap)."""
        _set_role(email, "admin")

    @app.cli.command("set-role")
    @click.argument("email")
    @click.argument("role", type=click.Choice(ALLOWED_ROLES))
    def set_role_command(email, role):
        """Give a user exactly one role: customer, barber or admin."""
        _set_role(email, role)

    @app.cli.command("seed-services")
    def seed_services_command():
        """Insert the default service catalog (idempotent)."""
        from utils.seed import seed_services
        added = seed_services()
        click.echo(f"{added} service(s) added")

    @app.cli.command("queue-rollover")
    def queue_rollover_command():
        """Clear yesterday's queue numbers and rank today."""
        from engine.queue_view import rollover
        cleared = rollover()
        click.echo(f"Cleared {cleared} stale queue number(s); today's queue ranked")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002, threaded=True)
