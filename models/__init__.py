from .db import db
from .user import User, UserRole
from .session import LoginSession
from .audit_log import AuditLog
from .service import Service
from .booking import Booking, BOOKING_STATUSES, ACTIVE_STATUSES, TERMINAL_STATUSES
from .queue_day import QueueDay
