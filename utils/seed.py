from models import db
from models.service import Service

DEFAULT_SERVICES = [
    {"name": "Classic Haircut", "duration_minutes": 30, "price": 250, "description": "Scissor or clipper cut with styling"},
    {"name": "Beard Trim", "duration_minutes": 15, "price": 150, "description": "Shape-up and line-up"},
    {"name": "Haircut & Beard", "duration_minutes": 45, "price": 350, "description": "Full cut plus beard trim"},
    {"name": "Kids Cut", "duration_minutes": 20, "price": 180, "description": "For customers under 12"},
    {"name": "Hot Towel Shave", "duration_minutes": 30, "price": 300, "description": "Straight razor shave"},
]


def seed_services() -> int:
    existing = {s.name for s in Service.query.all()}
    added = 0
    for row in DEFAULT_SERVICES:
        if row["name"] not in existing:
            db.session.add(Service(**row))
            added += 1
    db.session.commit()
    return added
