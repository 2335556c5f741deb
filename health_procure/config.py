import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "health_procure.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-health-procure")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    SESSION_COOKIE_NAME = "health_procure_session"
    SESSION_COOKIE_HTTPONLY = True
    PERMANENT_SESSION_LIFETIME = _int_env("SESSION_LIFETIME_SECONDS", 60 * 60 * 24 * 7)

    # JSON list of {id, name, role, reportsTo}; the bundled demo directory is used when unset.
    USER_DIRECTORY_PATH = os.environ.get("USER_DIRECTORY_PATH")

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)

    TEXTGEN_MODE = os.environ.get("TEXTGEN_MODE", "mock")
    TEXTGEN_BASE_URL = os.environ.get("TEXTGEN_BASE_URL")
    TEXTGEN_API_KEY = os.environ.get("TEXTGEN_API_KEY")
    TEXTGEN_TIMEOUT_SECONDS = _int_env("TEXTGEN_TIMEOUT_SECONDS", 30)
    TEXTGEN_VERIFY_SSL = _bool_env("TEXTGEN_VERIFY_SSL", True)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set for the production environment.")
        if env == "production" and self.SECRET_KEY == "dev-secret-health-procure":
            raise RuntimeError("SECRET_KEY is insecure for production.")
