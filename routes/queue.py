import json

from flask import Blueprint, Response, jsonify, current_app, g

from engine.notifier import get_notifier
from engine.queue_view import get_queue_for_day
from routes.common import day_arg
from security import policy
from utils.auth_context import login_required

queue_bp = Blueprint("queue", __name__, url_prefix="/queue")


def _short_name(name: str) -> str:
    parts = (name or "").split()
    if not parts:
        return "Customer"
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} {parts[-1][0]}."


@queue_bp.get("")
@login_required
def queue_for_day():
    if not policy.can_view_queue(g.role):
        return jsonify(error="Forbidden", code="forbidden"), 403

    day = day_arg()
    rows = []
    for row in get_queue_for_day(day):
        item = row.to_dict()
        if not policy.can_see_full_name(g.role, g.user.id, row.customer_id):
            item["booking"]["customer"]["name"] = _short_name(row.customer_name)
        rows.append(item)

    waits = [r["estimated_wait_minutes"] for r in rows]
    return jsonify(
        date=day.isoformat(),
        count=len(rows),
        average_wait_minutes=round(sum(waits) / len(waits)) if waits else 0,
        queue=rows,
    ), 200


@queue_bp.get("/events")
@login_required
def queue_events():
    """
    Server-Sent Events: one ``queue-changed`` event per committed change to the day.
    The first event is always a ``resync``; clients re-fetch ``GET /queue`` on every event.
    """
    if not policy.can_view_queue(g.role):
        return jsonify(error="Forbidden", code="forbidden"), 403

    day = day_arg()
    keepalive = current_app.config.get("QUEUE_EVENTS_KEEPALIVE_SECONDS", 15)
    notifier = get_notifier()

    def stream():
        # subscribes on the first read, not when the response is built
        with notifier.subscribe(day) as subscription:
            while True:
                event = subscription.wait(timeout=keepalive)
                if event is None:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: queue-changed\ndata: {json.dumps(event.to_dict())}\n\n"

    return Response(
        stream(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
