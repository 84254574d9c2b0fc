from .health import health_bp
from .auth import auth_bp
from .services import services_bp
from .booking import booking_bp
from .queue import queue_bp
from .admin import admin_bp
