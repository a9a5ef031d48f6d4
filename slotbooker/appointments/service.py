from __future__ import annotations

import logging
import re
from datetime import date, datetime

from flask import current_app

from ..errors import SlotUnavailableError, ValidationError
from ..notifications import notify_booking, send_cancel_link
from ..sqlite_db import execute_db, execute_db_count, query_db

logger = logging.getLogger(__name__)

PENDING = "pending"
CANCELLED = "cancelled"

_BOOKING_FIELDS = ("user_id", "name", "phone", "email", "appointment_date", "appointment_time")

TIME_RE = re.compile(r"\d{2}:\d{2}(:\d{2})?")
# a single address without whitespace
EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def _parse_date(date_str) -> str:
    try:
        return date.fromisoformat(str(date_str)).isoformat()
    except ValueError:
        raise ValidationError("Invalid date format (expected YYYY-MM-DD).") from None


def _parse_time(time_str) -> str:
    time_str = str(time_str).strip()
    m = TIME_RE.fullmatch(time_str)
    if m:
        fmt = "%H:%M:%S" if m.group(1) else "%H:%M"
        try:
            return datetime.strptime(time_str, fmt).strftime("%H:%M:%S")
        except ValueError:
            pass
    raise ValidationError("Invalid time format (expected HH:MM or HH:MM:SS).")


def _parse_email(value) -> str:
    email = str(value).strip()
    if not EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email address.")
    return email


def _now_parts(now: datetime | None) -> tuple[str, str]:
    now = now or datetime.now()
    return now.strftime("%Y-%m-%d"), now.strftime("%H:%M:%S")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_slot_policy(appointment_date: str, appointment_time: str) -> None:
    if current_app.config.get("ENFORCE_CLOSED_DAYS") and is_day_closed(appointment_date):
        raise SlotUnavailableError(f"{appointment_date} is closed for bookings.")

    if current_app.config.get("ENFORCE_SLOT_EXCLUSIVITY"):
        taken = query_db(
            "SELECT 1 FROM appointments "
            "WHERE appointment_date = ? AND appointment_time = ? AND status = ? LIMIT 1",
            (appointment_date, appointment_time, PENDING),
            one=True,
        )
        if taken:
            raise SlotUnavailableError("That time is no longer available. Please choose another slot.")


def get_appointment(appointment_id) -> dict | None:
    row = query_db("SELECT * FROM appointments WHERE id = ?", (appointment_id,), one=True)
    return dict(row) if row else None


def book_appointment(user_id, name, phone, email, appointment_date, appointment_time) -> dict:
    """Store a new pending appointment and queue its emails.

    Raises ValidationError when a field is missing or malformed and
    SlotUnavailableError when an enabled booking policy rejects the slot.
    The returned record reflects what was persisted; email delivery happens
    later on the notification worker.
    """
    values = dict(
        zip(_BOOKING_FIELDS, (user_id, name, phone, email, appointment_date, appointment_time))
    )
    missing = [field for field, value in values.items() if _blank(value)]
    if missing:
        raise ValidationError("All fields are required: " + ", ".join(missing))

    not_text = [field for field, value in values.items() if not isinstance(value, (str, int))]
    if not_text:
        raise ValidationError("Fields must be plain values: " + ", ".join(not_text))

    email = _parse_email(email)
    appointment_date = _parse_date(appointment_date)
    appointment_time = _parse_time(appointment_time)
    _check_slot_policy(appointment_date, appointment_time)

    appointment_id = execute_db(
        "INSERT INTO appointments "
        "(user_id, email, customer_name, customer_phone, appointment_date, appointment_time, status) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            str(user_id).strip(),
            email,
            str(name).strip(),
            str(phone).strip(),
            appointment_date,
            appointment_time,
            PENDING,
        ),
    )
    appointment = get_appointment(appointment_id)
    logger.info("Appointment %s booked for %s %s", appointment_id, appointment_date, appointment_time)

    notify_booking(appointment)
    return appointment


def list_booked_slots(day) -> list[str]:
    if _blank(day):
        raise ValidationError("date is required.")

    rows = query_db(
        "SELECT appointment_time FROM appointments WHERE appointment_date = ?",
        (_parse_date(day),),
    )
    return sorted({r["appointment_time"][:5] for r in rows})


def list_upcoming_appointments(email, now: datetime | None = None) -> list[dict]:
    if _blank(email):
        raise ValidationError("email is required.")

    today, current_time = _now_parts(now)
    rows = query_db(
        "SELECT id, appointment_date, appointment_time FROM appointments "
        "WHERE email = ? AND status = ? "
        "AND (appointment_date > ? OR (appointment_date = ? AND appointment_time > ?)) "
        "ORDER BY appointment_date, appointment_time",
        (str(email).strip(), PENDING, today, today, current_time),
    )
    return [dict(r) for r in rows]


def cancel_appointment(appointment_id) -> None:
    if _blank(appointment_id) or not isinstance(appointment_id, (str, int)):
        raise ValidationError("id is required.")

    updated = execute_db_count(
        "UPDATE appointments SET status = ? WHERE id = ?",
        (CANCELLED, appointment_id),
    )
    logger.info("Cancel request for appointment %s (%d row(s) updated)", appointment_id, updated)


def request_cancel_link(email) -> str:
    """Queue the cancellation-link email and return its job id."""
    if _blank(email):
        raise ValidationError("email is required.")
    return send_cancel_link(_parse_email(email))


def list_appointments() -> list[dict]:
    rows = query_db(
        "SELECT id, appointment_date, appointment_time, customer_name, customer_phone, email, status "
        "FROM appointments ORDER BY appointment_date, appointment_time"
    )
    return [dict(r) for r in rows]


def delete_appointment(appointment_id) -> bool:
    if _blank(appointment_id) or not isinstance(appointment_id, (str, int)):
        raise ValidationError("appointment_id is required.")

    deleted = execute_db_count("DELETE FROM appointments WHERE id = ?", (appointment_id,))
    if deleted:
        logger.info("Appointment %s deleted, slot freed", appointment_id)
    return bool(deleted)


def purge_expired(now: datetime | None = None) -> int:
    """Delete every appointment whose date/time lies before now."""
    today, current_time = _now_parts(now)
    return execute_db_count(
        "DELETE FROM appointments "
        "WHERE appointment_date < ? OR (appointment_date = ? AND appointment_time < ?)",
        (today, today, current_time),
    )


def close_day(day) -> str:
    if _blank(day):
        raise ValidationError("date is required.")

    day = _parse_date(day)
    execute_db("INSERT OR IGNORE INTO closed_days (date) VALUES (?)", (day,))
    logger.info("Day %s closed", day)
    return day


def list_closed_days() -> list[str]:
    return [r["date"] for r in query_db("SELECT date FROM closed_days ORDER BY date")]


def is_day_closed(day) -> bool:
    row = query_db("SELECT 1 FROM closed_days WHERE date = ?", (_parse_date(day),), one=True)
    return row is not None
