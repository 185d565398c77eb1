import os
from typing import Final


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default) == "True"


class Config:
    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-production")
    try:
        SQLALCHEMY_DATABASE_URI: Final[str] = os.environ["DATABASE_URL"]
    except KeyError:
        raise RuntimeError("DATABASE_URL environment variable is required (no sqlite fallback)")
    SQLALCHEMY_TRACK_MODIFICATIONS: Final[bool] = False
    SESSION_COOKIE_HTTPONLY: Final[bool] = True
    SESSION_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    SESSION_COOKIE_SAMESITE: Final[str] = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")
    REMEMBER_COOKIE_HTTPONLY: Final[bool] = True
    REMEMBER_COOKIE_SECURE: Final[bool] = os.getenv("FLASK_ENV") == "production"
    # GitHub REST API. GITHUB_TOKEN must be able to create and delete repositories in the classroom orgs.
    GITHUB_API_URL: Final[str] = os.getenv("GITHUB_API_URL", "https://api.github.com")
    GITHUB_TOKEN: Final[str] = os.getenv("GITHUB_TOKEN", "")
    # Upper bound (seconds) for every call into GitHub. A timeout counts as a failed creation.
    GITHUB_TIMEOUT: Final[float] = float(os.getenv("GITHUB_TIMEOUT", "10"))
    # OAuth app used for student sign-in
    GITHUB_CLIENT_ID: Final[str] = os.getenv("GITHUB_CLIENT_ID", "")
    GITHUB_CLIENT_SECRET: Final[str] = os.getenv("GITHUB_CLIENT_SECRET", "")
    # Fernet key for stored OAuth tokens. Derived from SECRET_KEY when empty (not for production).
    TOKEN_ENCRYPTION_KEY: Final[str] = os.getenv("TOKEN_ENCRYPTION_KEY", "")
    # Defaults for feature flags that have no row in the feature_flags table yet.
    FEATURE_FLAGS: Final[dict] = {
        "import_resiliency": _flag("IMPORT_RESILIENCY"),
    }
    # "scheduler" stores jobs for the worker process; "inline" runs them inside the request.
    JOB_QUEUE_BACKEND: Final[str] = os.getenv("JOB_QUEUE_BACKEND", "scheduler")
    # How often the worker process looks for jobs enqueued by web processes.
    JOB_QUEUE_POLL_SECONDS: Final[int] = int(os.getenv("JOB_QUEUE_POLL_SECONDS", "5"))
    # Flask-WTF CSRF settings
    # Set via env var `WTF_CSRF_TIME_LIMIT`. Use 0 or empty to disable time limit.
    WTF_CSRF_TIME_LIMIT: Final[int] = int(os.getenv("WTF_CSRF_TIME_LIMIT", "86400"))
    # Optional separate secret for CSRF signing. If not provided, SECRET_KEY is used.
    WTF_CSRF_SECRET_KEY: Final[str] = os.getenv("WTF_CSRF_SECRET_KEY", SECRET_KEY)
