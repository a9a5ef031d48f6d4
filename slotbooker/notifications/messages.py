from __future__ import annotations

from email.message import EmailMessage
from urllib.parse import urlencode

from flask import current_app, render_template


def cancel_url(email: str) -> str:
    return f"{current_app.config['CANCEL_URL']}?{urlencode({'email': email})}"


def _build(to: str, subject: str, template: str, **ctx) -> EmailMessage:
    message = EmailMessage()
    message["From"] = current_app.config.get("MAIL_SENDER") or "no-reply@localhost"
    message["To"] = to
    message["Subject"] = subject
    message.set_content(render_template(f"email/{template}.txt", **ctx))
    message.add_alternative(render_template(f"email/{template}.html", **ctx), subtype="html")
    return message


def confirmation_message(appointment: dict) -> EmailMessage:
    return _build(
        appointment["email"],
        "Appointment confirmation",
        "confirmation",
        appointment=appointment,
        cancel_url=cancel_url(appointment["email"]),
    )


def admin_alert_message(appointment: dict, admin_email: str) -> EmailMessage:
    return _build(
        admin_email,
        "New appointment booked",
        "admin_alert",
        appointment=appointment,
    )


def cancel_link_message(email: str) -> EmailMessage:
    return _build(
        email,
        "Appointment cancellation link",
        "cancel_link",
        cancel_url=cancel_url(email),
    )
