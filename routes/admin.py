from datetime import date
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, jsonify, g, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.coach import Coach, CoachAvailability, COACH_STATUSES, WEEKDAYS
from models.court import Court, COURT_TYPES, COURT_STATUSES, SPORT_TYPES
from models.equipment import Equipment, EQUIPMENT_TYPES, EQUIPMENT_STATUSES
from models.pricing_rule import PricingRule, RULE_KINDS, RULE_SCOPES
from routes.booking import _int_arg, booking_json
from security.rbac import require_roles
from services.bookings import get_booking_service
from services.errors import InvalidInput, NotFound, ResourceUnavailable
from services.resources import ResourceAdmin
from services.stores import BookingStore
from utils.audit import log_event
from utils.timeparse import is_hhmm, minutes_of

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _decimal(value, field: str, minimum=Decimal(0)):
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"{field} must be a number", code="invalid_input")
    if not result.is_finite():
        raise InvalidInput(f"{field} must be a finite number", code="invalid_input")
    if minimum is not None and result < minimum:
        raise InvalidInput(f"{field} must be at least {minimum}", code="invalid_input")
    return result


def _choice(value, field: str, allowed):
    if value not in allowed:
        raise InvalidInput(f"{field} must be one of: {', '.join(allowed)}", code="invalid_input")
    return value


def _date_or_none(value, field: str):
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be YYYY-MM-DD", code="invalid_date")


def _commit_unique(message: str):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ResourceUnavailable(message, code="duplicate")


def _resource_admin():
    return ResourceAdmin(clock=current_app.config.get("BOOKING_CLOCK"))


# ---------- bookings ----------
@admin_bp.get("/bookings")
@require_roles("ADMIN", "STAFF")
def list_bookings():
    limit = min(_int_arg(request.args.get("limit"), "limit", required=False) or 200, 500)
    rows = BookingStore().list_recent(status=request.args.get("status"), limit=limit)
    return jsonify([booking_json(b) for b in rows]), 200


@admin_bp.get("/bookings/<int:booking_id>")
@require_roles("ADMIN", "STAFF")
def get_booking(booking_id: int):
    booking = BookingStore().get(booking_id)
    if not booking:
        raise NotFound("Booking not found")
    return jsonify(booking_json(booking)), 200


@admin_bp.put("/bookings/<int:booking_id>/status")
@require_roles("ADMIN", "STAFF")
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")

    booking = get_booking_service().update_status(booking_id, status, actor=g.user)

    log_event("BOOKING_STATUS_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"status": status})
    return jsonify(message="Booking status updated successfully", booking=booking_json(booking)), 200


@admin_bp.put("/bookings/<int:booking_id>/payment-status")
@require_roles("ADMIN", "STAFF")
def update_payment_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = get_booking_service().update_payment_status(booking_id, data.get("payment_status"))

    log_event("BOOKING_PAYMENT_STATUS_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"payment_status": booking.payment_status})
    return jsonify(id=booking.id, payment_status=booking.payment_status), 200


@admin_bp.delete("/bookings/<int:booking_id>")
@require_roles("ADMIN")
def delete_booking(booking_id: int):
    result = get_booking_service().delete_reservation(booking_id)

    log_event("BOOKING_DELETE", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata=result)
    return jsonify(message="Booking deleted successfully", **result), 200


# ---------- courts ----------
def court_json(c: Court) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "court_type": c.court_type,
        "sport_type": c.sport_type,
        "base_price": c.base_price,
        "description": c.description,
        "amenities": c.amenities,
        "status": c.status,
    }


@admin_bp.get("/courts")
@require_roles("ADMIN", "STAFF")
def list_courts():
    return jsonify([court_json(c) for c in Court.query.order_by(Court.id.asc()).all()]), 200


@admin_bp.post("/courts")
@require_roles("ADMIN")
def create_court():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name or data.get("base_price") is None:
        raise InvalidInput("name and base_price are required", code="missing_fields")

    court = Court(
        name=name,
        court_type=_choice(data.get("court_type", "indoor"), "court_type", COURT_TYPES),
        sport_type=_choice(data.get("sport_type", "badminton"), "sport_type", SPORT_TYPES),
        base_price=_decimal(data.get("base_price"), "base_price"),
        description=(data.get("description") or "").strip() or None,
        amenities=list(data.get("amenities") or []),
        status="active",
    )
    db.session.add(court)
    _commit_unique("Court name already exists")

    log_event("COURT_CREATE", user_id=g.user.id, entity="court", entity_id=court.id)
    return jsonify(court_json(court)), 201


@admin_bp.put("/courts/<int:court_id>")
@require_roles("ADMIN")
def update_court(court_id: int):
    court = db.session.get(Court, court_id)
    if not court:
        raise NotFound("Court not found", code="court_not_found")

    data = request.get_json(silent=True) or {}
    if "name" in data:
        court.name = (data.get("name") or "").strip() or court.name
    if "court_type" in data:
        court.court_type = _choice(data["court_type"], "court_type", COURT_TYPES)
    if "sport_type" in data:
        court.sport_type = _choice(data["sport_type"], "sport_type", SPORT_TYPES)
    if "base_price" in data:
        court.base_price = _decimal(data["base_price"], "base_price")
    if "status" in data:
        court.status = _choice(data["status"], "status", COURT_STATUSES)
    if "description" in data:
        court.description = data.get("description")
    if "amenities" in data:
        court.amenities = list(data.get("amenities") or [])
    _commit_unique("Court name already exists")

    log_event("COURT_UPDATE", user_id=g.user.id, entity="court", entity_id=court.id)
    return jsonify(court_json(court)), 200


@admin_bp.delete("/courts/<int:court_id>")
@require_roles("ADMIN")
def delete_court(court_id: int):
    outcome = _resource_admin().retire_court(court_id)

    log_event("COURT_DELETE", user_id=g.user.id, entity="court", entity_id=court_id, metadata={"outcome": outcome})
    return jsonify(message=f"Court {outcome} successfully", outcome=outcome), 200


# ---------- equipment ----------
def equipment_json(e: Equipment) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "equipment_type": e.equipment_type,
        "total_stock": e.total_stock,
        "available_stock": e.available_stock,
        "rental_price": e.rental_price,
        "description": e.description,
        "status": e.status,
    }


@admin_bp.get("/equipment")
@require_roles("ADMIN", "STAFF")
def list_equipment():
    return jsonify([equipment_json(e) for e in Equipment.query.order_by(Equipment.id.asc()).all()]), 200


@admin_bp.post("/equipment")
@require_roles("ADMIN")
def create_equipment():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name or data.get("total_stock") is None or data.get("rental_price") is None:
        raise InvalidInput("name, total_stock and rental_price are required", code="missing_fields")

    total = data.get("total_stock")
    if not isinstance(total, int) or total < 0:
        raise InvalidInput("total_stock must be a non-negative integer", code="invalid_stock")

    item = Equipment(
        name=name,
        equipment_type=_choice(data.get("equipment_type", "other"), "equipment_type", EQUIPMENT_TYPES),
        total_stock=total,
        available_stock=total,
        rental_price=_decimal(data.get("rental_price"), "rental_price"),
        description=(data.get("description") or "").strip() or None,
        status=_choice(data.get("status", "available"), "status", EQUIPMENT_STATUSES),
    )
    db.session.add(item)
    db.session.commit()

    log_event("EQUIPMENT_CREATE", user_id=g.user.id, entity="equipment", entity_id=item.id)
    return jsonify(equipment_json(item)), 201


@admin_bp.put("/equipment/<int:equipment_id>")
@require_roles("ADMIN")
def update_equipment(equipment_id: int):
    data = request.get_json(silent=True) or {}

    # validated up front, applied together with the stock change in one write
    changes = {}
    name = str(data.get("name") or "").strip()
    if name:
        changes["name"] = name
    if "equipment_type" in data:
        changes["equipment_type"] = _choice(data["equipment_type"], "equipment_type", EQUIPMENT_TYPES)
    if "rental_price" in data:
        changes["rental_price"] = _decimal(data["rental_price"], "rental_price")
    if "status" in data:
        changes["status"] = _choice(data["status"], "status", EQUIPMENT_STATUSES)
    if "description" in data:
        changes["description"] = data.get("description")

    # available_stock is never edited directly, only derived from total_stock
    item = _resource_admin().update_equipment(equipment_id, changes, total_stock=data.get("total_stock"))

    log_event("EQUIPMENT_UPDATE", user_id=g.user.id, entity="equipment", entity_id=equipment_id)
    return jsonify(equipment_json(item)), 200


@admin_bp.delete("/equipment/<int:equipment_id>")
@require_roles("ADMIN")
def delete_equipment(equipment_id: int):
    outcome = _resource_admin().retire_equipment(equipment_id)

    log_event("EQUIPMENT_DELETE", user_id=g.user.id, entity="equipment", entity_id=equipment_id,
              metadata={"outcome": outcome})
    return jsonify(message=f"Equipment {outcome} successfully", outcome=outcome), 200


# ---------- coaches ----------
def coach_json(c: Coach) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "sport_specialization": c.sport_specialization,
        "hourly_rate": c.hourly_rate,
        "status": c.status,
        "experience_years": c.experience_years,
        "rating": c.rating,
        "availability": [
            {"day": w.day, "start_time": w.start_time, "end_time": w.end_time, "is_active": w.is_active}
            for w in c.availability
        ],
    }


def _availability_windows(raw):
    if not isinstance(raw, list):
        raise InvalidInput("availability must be a list", code="invalid_availability")

    windows = []
    for index, slot in enumerate(raw, start=1):
        if not isinstance(slot, dict) or not slot.get("day") or not slot.get("start_time") or not slot.get("end_time"):
            raise InvalidInput(f"Slot {index} must have day, start_time, and end_time", code="invalid_availability")

        day = str(slot["day"]).lower()
        if day not in WEEKDAYS:
            raise InvalidInput(
                f"Invalid day '{slot['day']}' in slot {index}. Must be one of: {', '.join(WEEKDAYS)}",
                code="invalid_availability",
            )
        if not is_hhmm(slot["start_time"]) or not is_hhmm(slot["end_time"]):
            raise InvalidInput(
                f"Invalid time format in slot {index}. Must be HH:MM (24-hour format)",
                code="invalid_availability",
            )
        if minutes_of(slot["start_time"]) >= minutes_of(slot["end_time"]):
            raise InvalidInput(f"Start time must be before end time in slot {index}", code="invalid_availability")

        windows.append(CoachAvailability(
            day=day,
            start_time=slot["start_time"],
            end_time=slot["end_time"],
            is_active=bool(slot.get("is_active", True)),
        ))
    return windows


@admin_bp.get("/coaches")
@require_roles("ADMIN", "STAFF")
def list_coaches():
    return jsonify([coach_json(c) for c in Coach.query.order_by(Coach.id.asc()).all()]), 200


@admin_bp.post("/coaches")
@require_roles("ADMIN")
def create_coach():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    phone = (data.get("phone") or "").strip()
    if not name or not email or not phone or data.get("hourly_rate") is None:
        raise InvalidInput("name, email, phone and hourly_rate are required", code="missing_fields")

    sports = data.get("sport_specialization") or []
    for sport in sports:
        _choice(sport, "sport_specialization", SPORT_TYPES)

    coach = Coach(
        name=name,
        email=email,
        phone=phone,
        sport_specialization=list(sports),
        hourly_rate=_decimal(data.get("hourly_rate"), "hourly_rate"),
        status=_choice(data.get("status", "available"), "status", COACH_STATUSES),
        experience_years=data.get("experience_years"),
        description=(data.get("description") or "").strip() or None,
    )
    coach.availability = _availability_windows(data.get("availability") or [])
    db.session.add(coach)
    _commit_unique("Coach email already exists")

    log_event("COACH_CREATE", user_id=g.user.id, entity="coach", entity_id=coach.id)
    return jsonify(coach_json(coach)), 201


@admin_bp.put("/coaches/<int:coach_id>")
@require_roles("ADMIN")
def update_coach(coach_id: int):
    coach = db.session.get(Coach, coach_id)
    if not coach:
        raise NotFound("Coach not found", code="coach_not_found")

    data = request.get_json(silent=True) or {}
    for field in ("name", "phone", "description"):
        if field in data:
            setattr(coach, field, (data.get(field) or "").strip() or getattr(coach, field))
    if "email" in data:
        coach.email = (data.get("email") or "").strip().lower() or coach.email
    if "experience_years" in data:
        coach.experience_years = data.get("experience_years")
    if "sport_specialization" in data:
        sports = data.get("sport_specialization") or []
        for sport in sports:
            _choice(sport, "sport_specialization", SPORT_TYPES)
        coach.sport_specialization = list(sports)
    _commit_unique("Coach email already exists")

    log_event("COACH_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach.id)
    return jsonify(coach_json(coach)), 200


@admin_bp.put("/coaches/<int:coach_id>/availability")
@require_roles("ADMIN")
def update_coach_availability(coach_id: int):
    data = request.get_json(silent=True) or {}
    windows = _availability_windows(data.get("availability"))

    coach = db.session.get(Coach, coach_id)
    if not coach:
        raise NotFound("Coach not found", code="coach_not_found")

    coach.availability = windows
    db.session.commit()

    log_event("COACH_AVAILABILITY_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach.id)
    return jsonify(message="Coach availability updated successfully", coach=coach_json(coach)), 200


@admin_bp.put("/coaches/<int:coach_id>/status")
@require_roles("ADMIN")
def update_coach_status(coach_id: int):
    data = request.get_json(silent=True) or {}
    coach = _resource_admin().set_coach_status(coach_id, data.get("status"))

    log_event("COACH_STATUS_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach_id,
              metadata={"status": coach.status})
    return jsonify(message="Coach status updated successfully", status=coach.status), 200


@admin_bp.put("/coaches/<int:coach_id>/rate")
@require_roles("ADMIN")
def update_coach_rate(coach_id: int):
    data = request.get_json(silent=True) or {}
    if data.get("hourly_rate") is None:
        raise InvalidInput("Valid hourly rate is required", code="missing_fields")
    rate = _decimal(data.get("hourly_rate"), "hourly_rate")

    coach = db.session.get(Coach, coach_id)
    if not coach:
        raise NotFound("Coach not found", code="coach_not_found")
    coach.hourly_rate = rate
    db.session.commit()

    log_event("COACH_RATE_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach_id)
    return jsonify(message="Coach hourly rate updated successfully", hourly_rate=coach.hourly_rate), 200


@admin_bp.delete("/coaches/<int:coach_id>")
@require_roles("ADMIN")
def delete_coach(coach_id: int):
    outcome = _resource_admin().retire_coach(coach_id)

    log_event("COACH_DELETE", user_id=g.user.id, entity="coach", entity_id=coach_id, metadata={"outcome": outcome})
    return jsonify(message=f"Coach {outcome} successfully", outcome=outcome), 200


# ---------- pricing rules ----------
def rule_json(r: PricingRule) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "kind": r.kind,
        "description": r.description,
        "apply_to": r.apply_to,
        "court_ids": r.court_ids,
        "sports": r.sports,
        "days_of_week": r.days_of_week,
        "start_date": r.start_date.isoformat() if r.start_date else None,
        "end_date": r.end_date.isoformat() if r.end_date else None,
        "start_time": r.start_time,
        "end_time": r.end_time,
        "multiplier": r.multiplier,
        "fixed_surcharge": r.fixed_surcharge,
        "is_active": r.is_active,
        "priority": r.priority,
    }


def _apply_rule_fields(rule: PricingRule, data: dict):
    if "kind" in data:
        rule.kind = _choice(data["kind"], "kind", RULE_KINDS)
    if "description" in data:
        rule.description = data.get("description")
    if "apply_to" in data:
        rule.apply_to = _choice(data["apply_to"], "apply_to", RULE_SCOPES)
    if "court_ids" in data:
        rule.court_ids = [int(c) for c in (data.get("court_ids") or [])]
    if "sports" in data:
        rule.sports = list(data.get("sports") or [])
    if "days_of_week" in data:
        days = [int(d) for d in (data.get("days_of_week") or [])]
        if any(d < 0 or d > 6 for d in days):
            raise InvalidInput("days_of_week values must be 0 (Sunday) to 6 (Saturday)", code="invalid_input")
        rule.days_of_week = days
    if "start_date" in data:
        rule.start_date = _date_or_none(data.get("start_date"), "start_date")
    if "end_date" in data:
        rule.end_date = _date_or_none(data.get("end_date"), "end_date")
    for field in ("start_time", "end_time"):
        if field in data:
            value = data.get(field) or None
            if value is not None and not is_hhmm(value):
                raise InvalidInput(f"{field} must be HH:MM", code="invalid_input")
            setattr(rule, field, value)
    if "multiplier" in data:
        rule.multiplier = _decimal(data["multiplier"], "multiplier")
    if "fixed_surcharge" in data:
        rule.fixed_surcharge = _decimal(data["fixed_surcharge"], "fixed_surcharge", minimum=None)
    if "is_active" in data:
        rule.is_active = bool(data["is_active"])
    if "priority" in data:
        try:
            rule.priority = int(data["priority"])
        except (TypeError, ValueError):
            raise InvalidInput("priority must be an integer", code="invalid_input")


@admin_bp.get("/pricing-rules")
@require_roles("ADMIN", "STAFF")
def list_pricing_rules():
    rules = PricingRule.query.order_by(PricingRule.priority.desc(), PricingRule.id.asc()).all()
    return jsonify([rule_json(r) for r in rules]), 200


@admin_bp.post("/pricing-rules")
@require_roles("ADMIN")
def create_pricing_rule():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name or not data.get("kind"):
        raise InvalidInput("Name and kind are required", code="missing_fields")

    rule = PricingRule(name=name, apply_to="all", court_ids=[], sports=[], days_of_week=[],
                       multiplier=Decimal(1), fixed_surcharge=Decimal(0), is_active=True, priority=1)
    try:
        _apply_rule_fields(rule, data)
    except (TypeError, ValueError):
        raise InvalidInput("court_ids and days_of_week must be integer lists", code="invalid_input")
    db.session.add(rule)
    _commit_unique("Pricing rule name already exists")

    log_event("PRICING_RULE_CREATE", user_id=g.user.id, entity="pricing_rule", entity_id=rule.id)
    return jsonify(rule_json(rule)), 201


@admin_bp.put("/pricing-rules/<int:rule_id>")
@require_roles("ADMIN")
def update_pricing_rule(rule_id: int):
    rule = db.session.get(PricingRule, rule_id)
    if not rule:
        raise NotFound("Pricing rule not found")

    data = request.get_json(silent=True) or {}
    if "name" in data:
        rule.name = (data.get("name") or "").strip() or rule.name
    try:
        _apply_rule_fields(rule, data)
    except (TypeError, ValueError):
        db.session.rollback()
        raise InvalidInput("court_ids and days_of_week must be integer lists", code="invalid_input")
    _commit_unique("Pricing rule name already exists")

    log_event("PRICING_RULE_UPDATE", user_id=g.user.id, entity="pricing_rule", entity_id=rule.id)
    return jsonify(rule_json(rule)), 200


@admin_bp.delete("/pricing-rules/<int:rule_id>")
@require_roles("ADMIN")
def delete_pricing_rule(rule_id: int):
    rule = db.session.get(PricingRule, rule_id)
    if not rule:
        raise NotFound("Pricing rule not found")
    db.session.delete(rule)
    db.session.commit()

    log_event("PRICING_RULE_DELETE", user_id=g.user.id, entity="pricing_rule", entity_id=rule_id)
    return jsonify(message="Pricing rule deleted successfully"), 200
