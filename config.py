import os
from decimal import Decimal

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as courtbook.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "courtbook.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie issued by the account service
    AUTH_COOKIE_NAME = "courtbook_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Cancellation policy
    CANCEL_CUTOFF_HOURS = int(os.getenv("CANCEL_CUTOFF_HOURS", "2"))

    # Pricing
    TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.10"))

    # Booking duration bounds (hours)
    MIN_BOOKING_HOURS = Decimal(os.getenv("MIN_BOOKING_HOURS", "0.5"))
    MAX_BOOKING_HOURS = Decimal(os.getenv("MAX_BOOKING_HOURS", "4"))

    # Operating day used for slot generation (local time)
    OPENING_HOUR = int(os.getenv("OPENING_HOUR", "8"))
    CLOSING_HOUR = int(os.getenv("CLOSING_HOUR", "22"))

    # Callable returning "now"; None means datetime.now
    BOOKING_CLOCK = None

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
