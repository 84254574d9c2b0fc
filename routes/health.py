from flask import Blueprint, jsonify
from sqlalchemy import text

from models import db

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        db.session.rollback()
        return jsonify(status="degraded", database="unavailable", detail=str(exc.__class__.__name__)), 503
    return jsonify(status="ok", database=database), 200
