from flask import jsonify, request

from ..errors import ValidationError
from ..extensions import limiter, rate_limit
from . import appointments_bp, service


def _payload() -> dict:
    data = request.get_json(silent=True) or request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object or form fields.")
    return data


@appointments_bp.post("/appointments")
@limiter.limit(rate_limit("BOOKING_RATE_LIMIT"))
def book():
    data = _payload()
    appointment = service.book_appointment(
        user_id=data.get("user_id"),
        name=data.get("name"),
        phone=data.get("phone"),
        email=data.get("email"),
        appointment_date=data.get("appointment_date"),
        appointment_time=data.get("appointment_time"),
    )
    return jsonify({"message": "Your appointment was booked successfully!", "id": appointment["id"]})


@appointments_bp.get("/booked-slots")
def booked_slots():
    return jsonify({"bookedSlots": service.list_booked_slots(request.args.get("date"))})


@appointments_bp.get("/appointments")
def upcoming():
    return jsonify(service.list_upcoming_appointments(request.args.get("email")))


@appointments_bp.post("/cancel-appointment")
def cancel():
    service.cancel_appointment(_payload().get("id"))
    return jsonify({"message": "Your appointment was cancelled."})


@appointments_bp.post("/send-cancel-link")
@limiter.limit(rate_limit("CANCEL_LINK_RATE_LIMIT"))
def cancel_link():
    job_id = service.request_cancel_link(_payload().get("email"))
    return jsonify({"message": "A cancellation link was sent to your email.", "job_id": job_id})
