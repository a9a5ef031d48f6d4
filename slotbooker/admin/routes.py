from __future__ import annotations

import logging

from flask import abort, jsonify, redirect, render_template, request, url_for

from ..appointments import service
from ..errors import ValidationError
from ..notifications import get_notifier
from ..photos import get_photo_store
from . import admin_bp
from .auth import admin_required, current_admin, login_admin, logout_admin

logger = logging.getLogger(__name__)


def _payload() -> dict:
    """Form fields or a JSON object, whichever the client sent."""
    data = request.get_json(silent=True) or request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object or form fields.")
    return data


@admin_bp.get("/login")
def login():
    if current_admin():
        return redirect(url_for("admin.dashboard"))
    return render_template("admin/login.html", error=None)


@admin_bp.post("/login")
def login_post():
    data = _payload()
    username = str(data.get("username") or "").strip()
    password = str(data.get("password") or "")

    if not login_admin(username, password):
        logger.warning("Failed admin login for %r from %s", username, request.remote_addr)
        return render_template("admin/login.html", error="Invalid credentials"), 401

    logger.info("Admin %r logged in", username)
    return redirect(url_for("admin.dashboard"))


@admin_bp.get("/logout")
def logout():
    logout_admin()
    return redirect(url_for("admin.login"))


@admin_bp.get("")
@admin_required()
def dashboard():
    return render_template(
        "admin/dashboard.html",
        photos=get_photo_store().list_photos(),
        appointments=service.list_appointments(),
        closed_days=service.list_closed_days(),
    )


@admin_bp.post("/add_photo")
@admin_required()
def add_photo():
    photo = request.files.get("photo")
    if photo is None or not photo.filename:
        raise ValidationError("photo is required.")
    get_photo_store().add_photo(photo)
    return redirect(url_for("admin.dashboard"))


@admin_bp.post("/delete_photo")
@admin_required()
def delete_photo():
    get_photo_store().delete_photo(_payload().get("photo_id"))
    return redirect(url_for("admin.dashboard"))


@admin_bp.post("/free_appointment_slot")
@admin_required()
def free_appointment_slot():
    service.delete_appointment(_payload().get("appointment_id"))
    return redirect(url_for("admin.dashboard"))


@admin_bp.get("/photos")
@admin_required(json=True)
def photos():
    return jsonify([{"id": name, "name": name} for name in get_photo_store().list_photos()])


@admin_bp.get("/appointments")
@admin_required(json=True)
def appointments():
    return jsonify(service.list_appointments())


@admin_bp.get("/closed_days")
@admin_required(json=True)
def closed_days():
    return jsonify(service.list_closed_days())


@admin_bp.post("/close_day")
@admin_required(json=True)
def close_day():
    day = service.close_day(_payload().get("date"))
    return jsonify({"message": f"Day {day} is now closed."})


@admin_bp.get("/notifications/<job_id>")
@admin_required(json=True)
def notification_status(job_id: str):
    status = get_notifier().status(job_id)
    if status is None:
        abort(404)
    return jsonify(status)
