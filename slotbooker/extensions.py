from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect

csrf = CSRFProtect()

# Storage comes from RATELIMIT_STORAGE_URI; only the public write endpoints are limited.
limiter = Limiter(key_func=get_remote_address)


def rate_limit(config_key: str):
    """A limit string read from the app config at request time."""
    return lambda: current_app.config[config_key]
