from flask import Blueprint, request, jsonify

from models.coach import Coach, COACH_STATUSES
from models.court import Court
from models.db import db
from services.errors import InvalidInput, NotFound

catalog_bp = Blueprint("catalog", __name__)


def public_court_json(c: Court) -> dict:
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


def public_coach_json(c: Coach, with_availability=False) -> dict:
    # contact details stay behind the admin surface
    out = {
        "id": c.id,
        "name": c.name,
        "sport_specialization": c.sport_specialization,
        "hourly_rate": c.hourly_rate,
        "status": c.status,
        "experience_years": c.experience_years,
        "rating": c.rating,
        "description": c.description,
    }
    if with_availability:
        out["availability"] = [
            {"day": w.day, "start_time": w.start_time, "end_time": w.end_time}
            for w in c.availability
            if w.is_active
        ]
    return out


@catalog_bp.get("/courts")
def list_public_courts():
    sport_type = (request.args.get("sport_type") or "").strip().lower()

    q = Court.query.filter(Court.status == "active")
    if sport_type:
        q = q.filter(Court.sport_type == sport_type)

    rows = q.order_by(Court.name.asc()).limit(200).all()
    return jsonify(courts=[public_court_json(c) for c in rows]), 200


@catalog_bp.get("/courts/<int:court_id>")
def get_public_court(court_id: int):
    court = Court.query.filter_by(id=court_id, status="active").first()
    if not court:
        raise NotFound("Court not found", code="court_not_found")
    return jsonify(public_court_json(court)), 200


@catalog_bp.get("/coaches")
def list_public_coaches():
    status = (request.args.get("status") or "available").strip().lower()
    sport = (request.args.get("sport") or "").strip().lower()
    if status not in COACH_STATUSES:
        raise InvalidInput(f"status must be one of {', '.join(COACH_STATUSES)}", code="invalid_input")

    coaches = Coach.query.filter_by(status=status).all()
    if sport:
        coaches = [c for c in coaches if sport in (c.sport_specialization or [])]
    coaches.sort(key=lambda c: (-(c.rating or 0), -(c.experience_years or 0), c.id))

    return jsonify(coaches=[public_coach_json(c) for c in coaches], count=len(coaches)), 200


@catalog_bp.get("/coaches/<int:coach_id>")
def get_public_coach(coach_id: int):
    coach = db.session.get(Coach, coach_id)
    if not coach:
        raise NotFound("Coach not found", code="coach_not_found")
    return jsonify(public_coach_json(coach, with_availability=True)), 200
