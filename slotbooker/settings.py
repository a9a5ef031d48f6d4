import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int | None) -> int | None:
    if value is None or not value.strip():
        return default
    return int(value)


def load_settings() -> dict:
    """Read configuration defaults from the environment."""
    mail_username = os.getenv("MAIL_USERNAME") or os.getenv("EMAIL_USER", "")

    return {
        "SECRET_KEY": os.getenv("SECRET_KEY", "dev"),
        "DATABASE": os.getenv("DATABASE", "appointments.db"),
        "IMAGE_DIR": os.getenv("IMAGE_DIR", ""),  # empty -> <instance>/img
        # admin gate
        "ADMIN_USERNAME": os.getenv("ADMIN_USERNAME", "admin"),
        "ADMIN_PASSWORD": os.getenv("ADMIN_PASSWORD", "adminpassword"),
        "ADMIN_PASSWORD_HASH": os.getenv("ADMIN_PASSWORD_HASH", ""),
        "ADMIN_SESSION_TTL": _get_int(os.getenv("ADMIN_SESSION_TTL"), 12 * 3600),
        # mail
        "ADMIN_EMAIL": os.getenv("ADMIN_EMAIL", ""),
        "MAIL_BACKEND": os.getenv("MAIL_BACKEND", "smtp" if mail_username else "console"),
        "MAIL_SERVER": os.getenv("MAIL_SERVER", "smtp.gmail.com"),
        "MAIL_PORT": _get_int(os.getenv("MAIL_PORT"), 587),
        "MAIL_USE_TLS": _get_bool(os.getenv("MAIL_USE_TLS"), default=True),
        "MAIL_USERNAME": mail_username,
        "MAIL_PASSWORD": os.getenv("MAIL_PASSWORD") or os.getenv("EMAIL_PASS", ""),
        "MAIL_SENDER": os.getenv("MAIL_SENDER", mail_username),
        "MAIL_MAX_ATTEMPTS": _get_int(os.getenv("MAIL_MAX_ATTEMPTS"), 3),
        "MAIL_RETRY_BACKOFF": float(os.getenv("MAIL_RETRY_BACKOFF", "2.0")),
        "MAIL_SHUTDOWN_TIMEOUT": float(os.getenv("MAIL_SHUTDOWN_TIMEOUT", "10")),
        "CANCEL_URL": os.getenv("CANCEL_URL", "http://localhost:5000/cancel.html"),
        # background sweep
        "SWEEPER_ENABLED": _get_bool(os.getenv("SWEEPER_ENABLED"), default=True),
        "SWEEP_INTERVAL_SECONDS": _get_int(os.getenv("SWEEP_INTERVAL_SECONDS"), 60),
        # booking policy
        "ENFORCE_CLOSED_DAYS": _get_bool(os.getenv("ENFORCE_CLOSED_DAYS")),
        "ENFORCE_SLOT_EXCLUSIVITY": _get_bool(os.getenv("ENFORCE_SLOT_EXCLUSIVITY")),
        # rate limits
        "RATELIMIT_ENABLED": _get_bool(os.getenv("RATELIMIT_ENABLED"), default=True),
        "RATELIMIT_STORAGE_URI": os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        "BOOKING_RATE_LIMIT": os.getenv("BOOKING_RATE_LIMIT", "20 per hour"),
        "CANCEL_LINK_RATE_LIMIT": os.getenv("CANCEL_LINK_RATE_LIMIT", "5 per hour"),
    }
