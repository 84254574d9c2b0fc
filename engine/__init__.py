from engine.notifier import ChangeNotifier
from engine.store import DayLocks


def init_app(app):
    app.extensions["queue_notifier"] = ChangeNotifier()
    app.extensions["queue_day_locks"] = DayLocks()
