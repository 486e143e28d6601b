"""
Persistence seams used by the booking core.

Each store is a thin wrapper over the Flask-SQLAlchemy session so the
engines can be handed their collaborators explicitly instead of reaching for
models directly. Store methods never commit; ``unit_of_work`` does.
"""
from contextlib import contextmanager

from sqlalchemy import func, update

from models import db
from models.booking import Booking, BookingEquipment, BLOCKING_STATUSES
from models.coach import Coach
from models.court import Court
from models.equipment import Equipment
from models.pricing_rule import PricingRule

# columns a booking can be keyed on for overlap checks
RESOURCE_KEYS = {
    "court_id": Booking.court_id,
    "coach_id": Booking.coach_id,
}


def _window_filter(query, start, end):
    # [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1
    return query.filter(Booking.start_time < end, Booking.end_time > start)


class BookingStore:
    def add(self, booking: Booking) -> Booking:
        db.session.add(booking)
        db.session.flush()
        return booking

    def get(self, booking_id):
        return db.session.get(Booking, booking_id)

    def delete(self, booking: Booking):
        db.session.delete(booking)
        db.session.flush()

    def find_overlapping(self, resource_key, resource_id, start, end,
                         statuses=BLOCKING_STATUSES, exclude_booking_id=None):
        try:
            column = RESOURCE_KEYS[resource_key]
        except KeyError:
            raise ValueError(f"Unknown resource key: {resource_key}")

        q = Booking.query.filter(column == resource_id, Booking.status.in_(tuple(statuses)))
        q = _window_filter(q, start, end)
        if exclude_booking_id is not None:
            q = q.filter(Booking.id != exclude_booking_id)
        return q.order_by(Booking.start_time.asc()).all()

    def committed_quantity(self, equipment_id, start, end,
                           statuses=BLOCKING_STATUSES, exclude_booking_id=None) -> int:
        q = (
            db.session.query(func.coalesce(func.sum(BookingEquipment.quantity), 0))
            .join(Booking, BookingEquipment.booking_id == Booking.id)
            .filter(
                BookingEquipment.equipment_id == equipment_id,
                Booking.status.in_(tuple(statuses)),
            )
        )
        q = _window_filter(q, start, end)
        if exclude_booking_id is not None:
            q = q.filter(Booking.id != exclude_booking_id)
        return int(q.scalar() or 0)

    def held_quantity(self, equipment_id) -> int:
        """Quantity of an item still held by non-cancelled bookings, any time."""
        q = (
            db.session.query(func.coalesce(func.sum(BookingEquipment.quantity), 0))
            .join(Booking, BookingEquipment.booking_id == Booking.id)
            .filter(BookingEquipment.equipment_id == equipment_id, Booking.status != "cancelled")
        )
        return int(q.scalar() or 0)

    def has_upcoming(self, resource_key, resource_id, now) -> bool:
        column = RESOURCE_KEYS[resource_key]
        q = Booking.query.filter(
            column == resource_id,
            Booking.start_time >= now,
            Booking.status.in_(BLOCKING_STATUSES),
        )
        return q.first() is not None

    def has_any(self, resource_key, resource_id) -> bool:
        column = RESOURCE_KEYS[resource_key]
        return Booking.query.filter(column == resource_id).first() is not None

    def count_upcoming(self, resource_key, resource_id, now) -> int:
        column = RESOURCE_KEYS[resource_key]
        return Booking.query.filter(
            column == resource_id,
            Booking.start_time >= now,
            Booking.status.in_(BLOCKING_STATUSES),
        ).count()

    def equipment_in_use(self, equipment_id) -> bool:
        q = (
            Booking.query
            .join(BookingEquipment, BookingEquipment.booking_id == Booking.id)
            .filter(
                BookingEquipment.equipment_id == equipment_id,
                Booking.status.in_(BLOCKING_STATUSES),
            )
        )
        return q.first() is not None

    def equipment_referenced(self, equipment_id) -> bool:
        return BookingEquipment.query.filter_by(equipment_id=equipment_id).first() is not None

    def list_for_user(self, user_id, status=None):
        q = Booking.query.filter_by(user_id=user_id)
        if status:
            q = q.filter_by(status=status)
        return q.order_by(Booking.start_time.desc()).all()

    def list_recent(self, status=None, limit=200):
        q = Booking.query
        if status:
            q = q.filter_by(status=status)
        return q.order_by(Booking.created_at.desc()).limit(limit).all()


class PricingRuleStore:
    def find_all_active(self):
        return PricingRule.query.filter_by(is_active=True).order_by(PricingRule.id.asc()).all()


class CourtStore:
    def get(self, court_id):
        return db.session.get(Court, court_id)

    def get_for_update(self, court_id):
        # FOR UPDATE is a no-op on SQLite; ResourceLocks covers that case
        return db.session.get(Court, court_id, with_for_update=True)


class CoachStore:
    def get(self, coach_id):
        return db.session.get(Coach, coach_id)

    def get_for_update(self, coach_id):
        return db.session.get(Coach, coach_id, with_for_update=True)

    def find_by_sport(self, sport_type, status="available"):
        coaches = Coach.query.filter_by(status=status).order_by(Coach.rating.desc(), Coach.id.asc()).all()
        # specializations are a JSON list, filtered here to stay dialect neutral
        return [c for c in coaches if sport_type in (c.sport_specialization or [])]


class EquipmentStore:
    def get(self, equipment_id):
        return db.session.get(Equipment, equipment_id)

    def get_for_update(self, equipment_id):
        return db.session.get(Equipment, equipment_id, with_for_update=True)

    def list(self, equipment_type=None):
        q = Equipment.query.filter(Equipment.total_stock > 0)
        if equipment_type:
            q = q.filter_by(equipment_type=equipment_type)
        return q.order_by(Equipment.id.asc()).all()

    def adjust_stock(self, equipment_id, delta: int):
        stmt = (
            update(Equipment)
            .where(Equipment.id == equipment_id)
            .values(available_stock=Equipment.available_stock + delta)
            .execution_options(synchronize_session="fetch")
        )
        db.session.execute(stmt)


@contextmanager
def unit_of_work():
    """Commit on success, roll back and re-raise on any failure."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
