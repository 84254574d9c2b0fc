from models.db import db
from utils import clock

BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled")
ACTIVE_STATUSES = ("pending", "confirmed", "in_progress")
TERMINAL_STATUSES = ("completed", "cancelled")


def _now():
    return clock.now()


class Booking(db.Model):
    __tablename__ = "bookings"

    # autoincrement id doubles as the creation sequence for queue tie-breaks
    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    barber_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)

    scheduled_time = db.Column(db.DateTime, nullable=False)  # shop-local wall time
    status = db.Column(db.String(20), nullable=False, default="pending")

    # maintained by engine.ranking only; null unless active and scheduled today
    queue_number = db.Column(db.Integer, nullable=True)
    estimated_wait_minutes = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now, nullable=False)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, nullable=True)

    service = db.relationship("Service", lazy="joined")
    customer = db.relationship("User", foreign_keys=[customer_id], lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        db.Index("ix_bookings_schedule_status", "scheduled_time", "status"),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def service_day(self):
        return self.scheduled_time.date()

    def __repr__(self) -> str:
        return f"<Booking id={self.id} status={self.status} at={self.scheduled_time} q={self.queue_number}>"
