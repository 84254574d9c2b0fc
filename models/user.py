from datetime import datetime
from models.db import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    role_row = db.relationship("UserRole", uselist=False, back_populates="user")

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip() or "Customer"


class UserRole(db.Model):
    """Exactly one role per user. Writing the row replaces the previous role."""
    __tablename__ = "user_roles"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    role = db.Column(db.String(20), nullable=False, default="customer")  # customer, barber, admin
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="role_row")

    __table_args__ = (
        db.CheckConstraint("role IN ('customer', 'barber', 'admin')", name="ck_user_roles_role"),
    )
