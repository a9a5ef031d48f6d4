from __future__ import annotations

import hmac
import secrets
import threading
import time
from abc import ABC, abstractmethod
from functools import wraps

from flask import current_app, redirect, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import AuthorizationError

SESSION_TOKEN_KEY = "admin_token"


class SessionStore(ABC):
    """Issues and validates opaque admin session tokens."""

    @abstractmethod
    def issue(self, username: str) -> str: ...

    @abstractmethod
    def validate(self, token: str | None) -> str | None:
        """Return the username bound to `token`, or None."""

    @abstractmethod
    def revoke(self, token: str | None) -> None: ...


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl: float | None = None, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._sessions: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def issue(self, username: str) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = (username, self._clock())
        return token

    def validate(self, token: str | None) -> str | None:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            username, last_seen = entry
            now = self._clock()
            if self.ttl and now - last_seen > self.ttl:
                del self._sessions[token]
                return None
            self._sessions[token] = (username, now)
            return username

    def revoke(self, token: str | None) -> None:
        with self._lock:
            self._sessions.pop(token, None)


class CredentialVerifier(ABC):
    @abstractmethod
    def verify(self, username: str, password: str) -> bool: ...


class StaticCredentialVerifier(CredentialVerifier):
    """One admin account: a fixed username and a werkzeug password hash."""

    def __init__(self, username: str, password_hash: str):
        self.username = username
        self.password_hash = password_hash

    @classmethod
    def from_config(cls, config) -> "StaticCredentialVerifier":
        password_hash = config.get("ADMIN_PASSWORD_HASH") or generate_password_hash(
            config.get("ADMIN_PASSWORD") or ""
        )
        return cls(config.get("ADMIN_USERNAME") or "admin", password_hash)

    def verify(self, username: str, password: str) -> bool:
        username_ok = hmac.compare_digest(username.encode(), self.username.encode())
        password_ok = check_password_hash(self.password_hash, password)
        return username_ok and password_ok


def init_app(app, session_store: SessionStore | None = None, verifier: CredentialVerifier | None = None):
    app.extensions["admin_sessions"] = session_store or InMemorySessionStore(
        ttl=app.config.get("ADMIN_SESSION_TTL")
    )
    app.extensions["admin_verifier"] = verifier or StaticCredentialVerifier.from_config(app.config)


def _store() -> SessionStore:
    return current_app.extensions["admin_sessions"]


def login_admin(username: str, password: str) -> bool:
    if not current_app.extensions["admin_verifier"].verify(username, password):
        return False
    session.clear()
    session[SESSION_TOKEN_KEY] = _store().issue(username)
    return True


def logout_admin() -> None:
    _store().revoke(session.pop(SESSION_TOKEN_KEY, None))


def current_admin() -> str | None:
    return _store().validate(session.get(SESSION_TOKEN_KEY))


def admin_required(json: bool = False):
    """Gate a view on a valid admin session.

    Web views redirect to the login page; JSON views answer 403.
    """

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if current_admin() is None:
                if json:
                    raise AuthorizationError("Unauthorized")
                return redirect(url_for("admin.login"))
            return view(*args, **kwargs)

        return wrapped

    return decorator
