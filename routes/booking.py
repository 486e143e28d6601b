from flask import Blueprint, request, jsonify, g

from models.booking import Booking
from security.rbac import has_role
from services.bookings import get_booking_service
from services.errors import BookingError, InvalidInput
from services.stores import BookingStore
from utils.auth_context import login_required
from utils.audit import log_event
from utils.timeparse import parse_iso, parse_day

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _parse_dt(value, field: str):
    if not value:
        raise InvalidInput(f"{field} is required", code="missing_fields")
    try:
        return parse_iso(value)
    except (TypeError, ValueError):
        raise InvalidInput(
            f"Invalid {field}. Use ISO e.g. 2026-01-20T18:00:00",
            code="invalid_datetime",
        )


def _int_arg(value, field: str, required=True):
    if value in (None, ""):
        if required:
            raise InvalidInput(f"{field} is required", code="missing_fields")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be an integer", code="invalid_input")


def booking_json(b: Booking) -> dict:
    return {
        "id": b.id,
        "user_id": b.user_id,
        "court_id": b.court_id,
        "coach_id": b.coach_id,
        "start_time": b.start_time.isoformat(),
        "end_time": b.end_time.isoformat(),
        "duration_hours": b.duration_hours,
        "status": b.status,
        "payment_status": b.payment_status,
        "equipment": [
            {"equipment_id": line.equipment_id, "quantity": line.quantity}
            for line in b.equipment_lines
        ],
        "pricing": {
            "base_price": b.base_price,
            "peak_hour_fee": b.peak_hour_fee,
            "weekend_fee": b.weekend_fee,
            "special_event_fee": b.special_event_fee,
            "equipment_fee": b.equipment_fee,
            "coach_fee": b.coach_fee,
            "discount": b.discount,
            "tax": b.tax,
            "total": b.total,
        },
        "notes": b.notes,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "cancelled_by": b.cancelled_by,
        "created_at": b.created_at.isoformat() if b.created_at else None,
    }


# ---------- PLAYERS: book a court (serialized per court/coach/equipment) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    court_id = _int_arg(data.get("court_id"), "court_id")
    start = _parse_dt(data.get("start_time"), "start_time")
    end = _parse_dt(data.get("end_time"), "end_time")
    coach_id = _int_arg(data.get("coach_id"), "coach_id", required=False)

    equipment = data.get("equipment") or []
    if not isinstance(equipment, list):
        raise InvalidInput("equipment must be a list", code="invalid_input")

    # only staff may grant a discount at booking time
    discount = data.get("discount") if (has_role("ADMIN") or has_role("STAFF")) else 0

    try:
        booking = get_booking_service().create_reservation(
            user_id=g.user.id,
            court_id=court_id,
            start=start,
            end=end,
            coach_id=coach_id,
            equipment=equipment,
            notes=(data.get("notes") or "").strip() or None,
            discount=discount,
        )
    except BookingError as err:
        log_event("BOOKING_CREATE_FAIL", user_id=g.user.id, entity="court", entity_id=court_id,
                  metadata={"code": err.code})
        raise

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"court_id": court_id, "total": booking.total})
    return jsonify(message="Booking created successfully", booking=booking_json(booking)), 201


# ---------- PLAYERS: view my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    rows = BookingStore().list_for_user(g.user.id, status=status)
    return jsonify([booking_json(b) for b in rows]), 200


# ---------- PLAYERS: cancel booking (policy window) ----------
@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    booking = get_booking_service().cancel_reservation(booking_id, g.user)

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(
        message="Booking cancelled successfully",
        booking={
            "id": booking.id,
            "status": booking.status,
            "cancelled_at": booking.cancelled_at.isoformat(),
        },
    ), 200


# ---------- PUBLIC: availability ----------
@booking_bp.get("/availability")
def check_availability():
    court_id = _int_arg(request.args.get("court_id"), "court_id")
    date_str = request.args.get("date")
    if not date_str:
        raise InvalidInput("date is required", code="missing_fields")
    try:
        day = parse_day(date_str)
    except ValueError:
        raise InvalidInput("Invalid date. Use YYYY-MM-DD", code="invalid_date")

    slots = get_booking_service().check_availability(court_id, day, request.args.get("duration", "1"))
    return jsonify(time_slots=[s.to_dict() for s in slots]), 200


@booking_bp.get("/coach-availability")
def check_coach_availability():
    coach_id = _int_arg(request.args.get("coach_id"), "coach_id")
    start = _parse_dt(request.args.get("start_time"), "start_time")
    end = _parse_dt(request.args.get("end_time"), "end_time")

    result = get_booking_service().check_secondary_availability(coach_id, start, end)
    return jsonify(result.to_dict()), 200


@booking_bp.get("/available-coaches")
def available_coaches():
    court_id = _int_arg(request.args.get("court_id"), "court_id")
    start = _parse_dt(request.args.get("start_time"), "start_time")
    end = _parse_dt(request.args.get("end_time"), "end_time")

    coaches = get_booking_service().available_coaches(court_id, start, end)
    return jsonify(
        available_coaches=[
            {
                "id": c.id,
                "name": c.name,
                "sport_specialization": c.sport_specialization,
                "hourly_rate": c.hourly_rate,
                "experience_years": c.experience_years,
                "rating": c.rating,
            }
            for c in coaches
        ],
        count=len(coaches),
    ), 200


@booking_bp.get("/available-equipment")
def available_equipment():
    start = _parse_dt(request.args.get("start_time"), "start_time")
    end = _parse_dt(request.args.get("end_time"), "end_time")

    preview = get_booking_service().equipment_preview(start, end, request.args.get("equipment_type"))
    return jsonify(preview), 200


@booking_bp.post("/quote")
def price_quote():
    data = request.get_json(silent=True) or {}
    court_id = _int_arg(data.get("court_id"), "court_id")
    start = _parse_dt(data.get("start_time"), "start_time")
    end = _parse_dt(data.get("end_time"), "end_time")
    coach_id = _int_arg(data.get("coach_id"), "coach_id", required=False)

    breakdown = get_booking_service().price_quote(
        court_id, start, end,
        equipment=data.get("equipment") or [],
        coach_id=coach_id,
    )
    return jsonify(breakdown.as_dict()), 200
