import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# Half-hour grid with a lunch gap
DEFAULT_TIME_SLOTS = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "13:00", "13:30", "14:00", "14:30", "15:00", "15:30",
    "16:00", "16:30", "17:00", "17:30", "18:00",
]


def _csv_env(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


def engine_options(database_uri: str, timeout: int) -> dict:
    """Bound every store call: SQLite busy timeout, or the pool checkout timeout elsewhere."""
    if database_uri.startswith("sqlite"):
        return {"pool_pre_ping": True, "connect_args": {"timeout": timeout, "check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_timeout": timeout}


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as barberqueue.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "barberqueue.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound (seconds) for store calls and per-day ranking locks
    STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "barberqueue_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Minimum gap between last_seen_at writes for one session
    SESSION_TOUCH_INTERVAL_SECONDS = 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # CSRF double-submit cookie
    CSRF_ENABLED = True
    CSRF_COOKIE_NAME = "csrf_token"
    CSRF_HEADER_NAME = "X-CSRF-Token"

    # Passwords
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))

    # Shop calendar
    SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "UTC")
    BOOKING_TIME_SLOTS = _csv_env("BOOKING_TIME_SLOTS", DEFAULT_TIME_SLOTS)
    CLOSED_WEEKDAYS = [int(d) for d in _csv_env("CLOSED_WEEKDAYS", ["6"])]  # Monday=0 ... Sunday=6

    # Live queue stream
    QUEUE_EVENTS_KEEPALIVE_SECONDS = int(os.getenv("QUEUE_EVENTS_KEEPALIVE_SECONDS", "15"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 5}}
    BCRYPT_ROUNDS = 4
    SHOP_TIMEZONE = "UTC"
    BOOKING_TIME_SLOTS = DEFAULT_TIME_SLOTS
    CLOSED_WEEKDAYS = [6]
    QUEUE_EVENTS_KEEPALIVE_SECONDS = 1
    LOG_LEVEL = "WARNING"
