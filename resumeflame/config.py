# config.py
import os

from resumeflame.errors import ConfigError


def _csv_env(name: str, default: str = "") -> list[str]:
    val = os.getenv(name, default)
    # split only if non-empty; strip whitespace
    return [x.strip() for x in val.split(",") if x.strip()] if val else []


class BaseConfig:
    DEBUG = False
    TESTING = False
    JSON_SORT_KEYS = False
    PREFERRED_URL_SCHEME = "https"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Uploads: PDF only, 5 MB. Flask's own cap leaves room for multipart overhead
    MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    MAX_CONTENT_LENGTH = 6 * 1024 * 1024
    MIN_TEXT_CHARS = 50

    # Secrets (must be set in env for prod)
    SECRET_KEY = os.getenv("APP_SECRET_KEY") or "dev-only-secret-change-me"
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY") or "dev-only-jwt-secret-change-me"
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")

    # CORS
    CORS_ORIGINS = _csv_env("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    # Rate limits
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Datastore
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB = os.getenv("MONGO_DB", "resumeflame")
    FERNET_KEY = os.getenv("FERNET_KEY")

    # LLM
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Lemon Squeezy
    LEMONSQUEEZY_API_KEY = os.getenv("LEMONSQUEEZY_API_KEY")
    LEMONSQUEEZY_STORE_ID = os.getenv("LEMONSQUEEZY_STORE_ID")
    LEMONSQUEEZY_VARIANT_ID_BASIC = os.getenv("LEMONSQUEEZY_VARIANT_ID_BASIC")
    LEMONSQUEEZY_VARIANT_ID_PRO = os.getenv("LEMONSQUEEZY_VARIANT_ID_PRO")
    LEMONSQUEEZY_WEBHOOK_SECRET = os.getenv("LEMONSQUEEZY_WEBHOOK_SECRET")


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    pass


class TestConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-0123456789"
    ADMIN_EMAIL = ""
    ADMIN_PASSWORD = ""
    CORS_ORIGINS = ["http://localhost:3000"]
    FERNET_KEY = None
    OPENAI_API_KEY = "sk-test"
    LEMONSQUEEZY_API_KEY = "ls-test"
    LEMONSQUEEZY_STORE_ID = "1234"
    LEMONSQUEEZY_VARIANT_ID_BASIC = "111"
    LEMONSQUEEZY_VARIANT_ID_PRO = "222"
    LEMONSQUEEZY_WEBHOOK_SECRET = "whsec-test"


REQUIRED_IN_PROD = (
    "APP_SECRET_KEY",
    "JWT_SECRET_KEY",
    "OPENAI_API_KEY",
    "LEMONSQUEEZY_WEBHOOK_SECRET",
)


def validate_required_secrets():
    if os.getenv("ENV") == "prod":
        missing = [name for name in REQUIRED_IN_PROD if not os.getenv(name)]
        if missing:
            raise ConfigError(f"{', '.join(missing)} must be set in production")


def config_for_env():
    return ProdConfig if os.getenv("ENV") == "prod" else DevConfig
