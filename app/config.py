import os


def _env_list(name, default):
    """Read a comma-separated env var into a list of stripped strings."""
    raw = os.environ.get(name)
    if raw is None:
        return list(default)
    return [v.strip() for v in raw.split(",") if v.strip()]


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- Email (SMTP) ---
    MAIL_SMTP_HOST = os.environ.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    MAIL_SMTP_PORT = int(os.environ.get("MAIL_SMTP_PORT", 587))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Tracker")
    MAIL_FROM_ADDRESS = os.environ.get("MAIL_FROM_ADDRESS")  # defaults to MAIL_USERNAME

    # --- Tracker settings ---
    USER_FORMAT = os.environ.get("USER_FORMAT", "firstname_lastname")
    DEFAULT_NOTIFICATION_OPTION = os.environ.get(
        "DEFAULT_NOTIFICATION_OPTION", "only_my_events"
    )
    PASSWORD_MIN_LENGTH = int(os.environ.get("PASSWORD_MIN_LENGTH", 4))
    NOTIFIED_EVENTS = _env_list(
        "NOTIFIED_EVENTS",
        [
            "issue_added",
            "issue_updated",
            "wiki_content_added",
            "wiki_content_updated",
        ],
    )
    DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "en")
    AVAILABLE_LANGUAGES = _env_list("AVAILABLE_LANGUAGES", ["en", "de", "fr"])
    AUTOLOGIN_DAYS = int(os.environ.get("AUTOLOGIN_DAYS", 0))  # 0 = disabled
    PRINCIPAL_SEARCH_LIMIT = int(os.environ.get("PRINCIPAL_SEARCH_LIMIT", 100))

    # Ordered list of allowance evaluator classes (dotted import paths).
    # Read once by create_app() to build the permission resolver.
    ALLOWANCE_EVALUATORS = _env_list(
        "ALLOWANCE_EVALUATORS",
        ["app.services.allowance_service.DefaultAllowanceEvaluator"],
    )

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    # --- WTF / CSRF ---
    WTF_CSRF_ENABLED = True

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False


class TestConfig(Config):
    """Testing — in-memory SQLite, CSRF disabled."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    APP_BASE_URL = "http://localhost:5000"
    USER_FORMAT = "firstname_lastname"
    DEFAULT_NOTIFICATION_OPTION = "only_my_events"
    PASSWORD_MIN_LENGTH = 4
    NOTIFIED_EVENTS = [
        "issue_added",
        "issue_updated",
        "wiki_content_added",
        "wiki_content_updated",
    ]
    AVAILABLE_LANGUAGES = ["en", "de"]
    AUTOLOGIN_DAYS = 7
    ALLOWANCE_EVALUATORS = [
        "app.services.allowance_service.DefaultAllowanceEvaluator",
    ]
    WTF_CSRF_ENABLED = False  # disable CSRF for test requests
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
