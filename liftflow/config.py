import os

# Startup is refused without these. DATABASE_URL also carries the
# datastore's service credential (user/password in the URL).
REQUIRED_ENV_VARS = (
    "SECRET_KEY",
    "DATABASE_URL",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
)


def _database_url():
    """DATABASE_URL, with Heroku/Railway style postgres:// rewritten for SQLAlchemy."""
    url = os.environ.get("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url or None


class Config:
    """Settings shared by every environment. Values come from the process env."""

    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    # Signed timestamps older than this (seconds) are rejected as replays
    STRIPE_WEBHOOK_TOLERANCE = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE", 300))
    # Stored in program_access.source for purchased grants
    PAYMENT_PROVIDER = "stripe"

    # Used to build Checkout success/cancel URLs
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- /payment/success confirmation ---
    CONFIRM_GRACE_PERIOD = float(os.environ.get("CONFIRM_GRACE_PERIOD", 2.0))
    CONFIRM_TIMEOUT = float(os.environ.get("CONFIRM_TIMEOUT", 30.0))

    # --- Cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    WTF_CSRF_ENABLED = True

    @staticmethod
    def validate():
        """Raise RuntimeError naming every required env var that is unset."""
        missing = [name for name in REQUIRED_ENV_VARS if not os.environ.get(name)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False


class TestConfig(Config):
    """In-memory SQLite, fake Stripe secrets, no CSRF, no rate limits, no grace period."""

    TESTING = True
    DEBUG = True
    SERVER_NAME = "localhost"
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"

    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    STRIPE_WEBHOOK_TOLERANCE = 300
    APP_BASE_URL = "http://localhost:5000"

    CONFIRM_GRACE_PERIOD = 0.0
    CONFIRM_TIMEOUT = 5.0

    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False

    @staticmethod
    def validate():
        """Everything above is hardcoded; nothing to check."""


class ProdConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
