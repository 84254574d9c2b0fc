from models.db import db


class QueueDay(db.Model):
    """
    One row per ranked calendar day.

    Ranking a day locks this row and bumps ``revision``; the revision is part of the
    UPDATE's WHERE clause, so two recomputations of the same day cannot both commit.
    """
    __tablename__ = "queue_days"

    day = db.Column(db.Date, primary_key=True)
    revision = db.Column(db.Integer, nullable=False, default=0)
    # True when the last ranking ran while this day was "today" and so materialised numbers
    live = db.Column(db.Boolean, nullable=False, default=False)
    ranked_at = db.Column(db.DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": revision, "version_id_generator": False}
