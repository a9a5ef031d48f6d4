from __future__ import annotations

import atexit
import logging

from flask import current_app

from ..errors import NotificationError
from .messages import admin_alert_message, cancel_link_message, confirmation_message
from .worker import NotificationQueue
from .transports import build_transport

logger = logging.getLogger(__name__)


def init_app(app) -> NotificationQueue:
    notifier = NotificationQueue(
        build_transport(app.config),
        max_attempts=app.config.get("MAIL_MAX_ATTEMPTS") or 3,
        backoff=float(app.config.get("MAIL_RETRY_BACKOFF", 2.0)),
    )
    notifier.start()
    atexit.register(notifier.shutdown, float(app.config.get("MAIL_SHUTDOWN_TIMEOUT", 10)))
    app.extensions["notifications"] = notifier
    return notifier


def get_notifier() -> NotificationQueue:
    return current_app.extensions["notifications"]


def _enqueue(build, kind: str, *args) -> str | None:
    try:
        message = build(*args)
    except ValueError as e:
        err = NotificationError(f"Could not build {kind} email: {e}")
        logger.error("%s", err.message)
        return None
    return get_notifier().enqueue(message, kind)


def notify_booking(appointment: dict) -> list[str]:
    """Queue the customer confirmation and the admin alert for a new booking."""
    job_ids = [_enqueue(confirmation_message, "confirmation", appointment)]

    admin_email = current_app.config.get("ADMIN_EMAIL")
    if admin_email:
        job_ids.append(_enqueue(admin_alert_message, "admin_alert", appointment, admin_email))
    else:
        logger.warning("ADMIN_EMAIL is not set, no admin alert for appointment %s", appointment["id"])
    return [job_id for job_id in job_ids if job_id]


def send_cancel_link(email: str) -> str:
    return get_notifier().enqueue(cancel_link_message(email), "cancel_link")
