"""
Reservation lifecycle: create, cancel, admin status changes and deletion.

Every write path runs its validate-then-write sequence while holding the
per-resource locks for the court, coach and equipment involved, inside a
single database transaction. Rejections are raised as ``BookingError``
subclasses and nothing is persisted when one is raised.
"""
import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app

from models import db
from models.booking import (
    Booking,
    BookingEquipment,
    BLOCKING_STATUSES,
    BOOKING_STATUSES,
    PAYMENT_STATUSES,
)
from services.coaches import CoachScheduler
from services.errors import (
    InvalidInput,
    InventoryShortage,
    NotFound,
    PolicyViolation,
    ResourceUnavailable,
)
from services.inventory import EquipmentLine, InventoryLedger, normalize_lines
from services.locks import coach_key, court_key, equipment_key, resource_locks
from services.overlap import OverlapChecker
from services.pricing import DEFAULT_TAX_RATE, PricingEngine, hours_between, to_decimal
from services.slots import SlotGenerator
from services.stores import (
    BookingStore,
    CoachStore,
    CourtStore,
    EquipmentStore,
    PricingRuleStore,
    unit_of_work,
)

logger = logging.getLogger(__name__)

# admin status changes; cancelled -> confirmed is the only way back
TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("cancelled", "completed", "no_show"),
    "cancelled": ("confirmed",),
    "completed": (),
    "no_show": (),
}

STAFF_ROLES = {"STAFF", "ADMIN"}


def _is_staff(actor) -> bool:
    names = getattr(actor, "role_names", None) or set()
    return bool(STAFF_ROLES.intersection(names))


def _recorded_lines(booking):
    return [EquipmentLine(l.equipment_id, l.quantity) for l in booking.equipment_lines]


class BookingService:
    def __init__(self, bookings=None, courts=None, coaches=None, equipment=None, rules=None,
                 locks=None, clock=None, tax_rate=DEFAULT_TAX_RATE, cancel_cutoff_hours=2,
                 min_booking_hours=Decimal("0.5"), max_booking_hours=Decimal("4"),
                 opening_hour=8, closing_hour=22):
        self.bookings = bookings or BookingStore()
        self.courts = courts or CourtStore()
        self.coaches = coaches or CoachStore()
        self.equipment = equipment or EquipmentStore()
        self.rules = rules or PricingRuleStore()
        self.locks = locks or resource_locks
        self.clock = clock or datetime.now

        self.cancel_cutoff_hours = to_decimal(cancel_cutoff_hours)
        self.min_booking_hours = to_decimal(min_booking_hours)
        self.max_booking_hours = to_decimal(max_booking_hours)

        self.overlap = OverlapChecker(self.bookings)
        self.inventory = InventoryLedger(self.equipment, self.bookings)
        self.pricing = PricingEngine(self.rules, tax_rate=tax_rate)
        self.coach_scheduler = CoachScheduler(self.coaches, self.overlap)
        self.slots = SlotGenerator(self.overlap, opening_hour=opening_hour, closing_hour=closing_hour)

    # ---------- validation helpers ----------
    @staticmethod
    def _validate_window(start, end):
        if start is None or end is None:
            raise InvalidInput("start_time and end_time are required", code="missing_fields")
        if not isinstance(start, datetime) or not isinstance(end, datetime):
            raise InvalidInput("start_time and end_time must be datetimes", code="invalid_datetime")
        if start >= end:
            raise InvalidInput("end_time must be after start_time", code="invalid_window")

    def _validate_duration(self, hours: Decimal):
        if hours < self.min_booking_hours or hours > self.max_booking_hours:
            raise InvalidInput(
                f"Duration must be between {self.min_booking_hours} and {self.max_booking_hours} hours",
                code="invalid_duration",
                details={"duration_hours": str(hours)},
            )

    @staticmethod
    def _validate_discount(discount) -> Decimal:
        try:
            value = to_decimal(discount or 0)
        except ArithmeticError:
            raise InvalidInput("discount must be a number", code="invalid_discount")
        if not value.is_finite():
            raise InvalidInput("discount must be a number", code="invalid_discount")
        if value < 0:
            raise InvalidInput("discount cannot be negative", code="invalid_discount")
        return value

    @staticmethod
    def _check_discount_fits(price):
        # discount may not exceed the sum of the priced components
        if price.subtotal < 0:
            raise InvalidInput(
                "discount cannot exceed the booking price",
                code="invalid_discount",
                details={"discount": str(price.discount), "price": str(price.subtotal + price.discount)},
            )
        return price

    def _get_booking(self, booking_id) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def _get_court(self, court_id, for_update=False):
        court = self.courts.get_for_update(court_id) if for_update else self.courts.get(court_id)
        if court is None:
            raise NotFound("Court not found", code="court_not_found")
        return court

    def _get_coach(self, coach_id, for_update=False):
        coach = self.coaches.get_for_update(coach_id) if for_update else self.coaches.get(coach_id)
        if coach is None:
            raise NotFound("Coach not found", code="coach_not_found")
        return coach

    @staticmethod
    def _lock_keys(court_id, coach_id, lines):
        return [court_key(court_id), coach_key(coach_id)] + [equipment_key(l.equipment_id) for l in lines]

    # ---------- read-only operations ----------
    def price_quote(self, court_id, start, end, equipment=(), coach_id=None, discount=0):
        self._validate_window(start, end)
        discount = self._validate_discount(discount)
        court = self._get_court(court_id)
        coach = self._get_coach(coach_id) if coach_id else None

        priced = []
        for line in normalize_lines(equipment):
            item = self.equipment.get(line.equipment_id)
            if item is None:
                raise NotFound(f"Equipment {line.equipment_id} not found", code="equipment_not_found")
            priced.append((item, line.quantity))

        price = self.pricing.calculate_price(court, start, end, priced, coach, discount=discount)
        return self._check_discount_fits(price)

    def check_availability(self, court_id, day, duration_hours=1):
        try:
            hours = to_decimal(duration_hours)
        except ArithmeticError:
            raise InvalidInput("duration must be a number", code="invalid_duration")
        if not hours.is_finite():
            raise InvalidInput("duration must be a number", code="invalid_duration")
        if hours <= 0:
            raise InvalidInput("duration must be positive", code="invalid_duration")
        self._validate_duration(hours)
        self._get_court(court_id)
        return self.slots.generate_slots(court_id, day, hours)

    def check_secondary_availability(self, coach_id, start, end):
        self._validate_window(start, end)
        coach = self._get_coach(coach_id)
        return self.coach_scheduler.check(coach, start, end)

    def available_coaches(self, court_id, start, end):
        self._validate_window(start, end)
        court = self._get_court(court_id)
        return self.coach_scheduler.available_for(court, start, end)

    def equipment_preview(self, start, end, equipment_type=None):
        self._validate_window(start, end)
        return self.inventory.rental_preview(start, end, equipment_type=equipment_type)

    # ---------- create ----------
    def create_reservation(self, user_id, court_id, start, end, coach_id=None, equipment=(),
                           notes=None, discount=0) -> Booking:
        if not court_id:
            raise InvalidInput("court_id is required", code="missing_fields")
        self._validate_window(start, end)

        now = self.clock()
        if start <= now:
            raise InvalidInput("Cannot book in the past", code="start_in_past")

        duration = hours_between(start, end)
        self._validate_duration(duration)
        discount = self._validate_discount(discount)
        lines = normalize_lines(equipment)

        with self.locks.hold(*self._lock_keys(court_id, coach_id, lines)):
            with unit_of_work():
                booking = self._create_locked(user_id, court_id, start, end, coach_id, lines, notes, discount)

        logger.info("Booking %s created for court %s (%s - %s)", booking.id, court_id, start, end)
        return booking

    def _create_locked(self, user_id, court_id, start, end, coach_id, lines, notes, discount):
        court = self._get_court(court_id, for_update=True)
        if not court.is_bookable:
            raise ResourceUnavailable("Court is not available", code="court_inactive")

        if not self.overlap.is_available("court_id", court.id, start, end):
            raise ResourceUnavailable(
                "Court is not available for the selected time slot",
                code="court_unavailable",
            )

        coach = None
        if coach_id:
            coach = self._get_coach(coach_id, for_update=True)
            check = self.coach_scheduler.check(coach, start, end)
            if not check.available:
                raise ResourceUnavailable(check.reason, code="coach_unavailable")

        availability = self.inventory.check_equipment_availability(lines, start, end, for_update=True)
        if not availability.available:
            raise InventoryShortage(availability.shortages)

        price = self.pricing.calculate_price(
            court,
            start,
            end,
            [(availability.items[l.equipment_id], l.quantity) for l in lines],
            coach,
            discount=discount,
        )
        self._check_discount_fits(price)

        booking = Booking(
            user_id=user_id,
            court_id=court.id,
            coach_id=coach.id if coach else None,
            start_time=start,
            end_time=end,
            duration_hours=price.duration,
            status="confirmed",
            payment_status="pending",
            base_price=price.base_price,
            peak_hour_fee=price.peak_hour_fee,
            weekend_fee=price.weekend_fee,
            special_event_fee=price.special_event_fee,
            equipment_fee=price.equipment_fee,
            coach_fee=price.coach_fee,
            discount=price.discount,
            tax=price.tax,
            total=price.total,
            notes=notes,
        )
        booking.equipment_lines = [
            BookingEquipment(equipment_id=l.equipment_id, quantity=l.quantity) for l in lines
        ]
        self.bookings.add(booking)
        self.inventory.reserve(lines)
        return booking

    # ---------- cancel (self-service) ----------
    def cancel_reservation(self, booking_id, actor) -> Booking:
        booking = self._get_booking(booking_id)
        if booking.user_id != getattr(actor, "id", None) and not _is_staff(actor):
            # do not reveal other users' bookings
            raise NotFound("Booking not found")

        lines = _recorded_lines(booking)
        with self.locks.hold(*self._lock_keys(booking.court_id, booking.coach_id, lines)):
            with unit_of_work():
                db.session.refresh(booking)
                self._check_cancellable(booking)
                self.inventory.release(_recorded_lines(booking))
                booking.status = "cancelled"
                booking.cancelled_at = self.clock()
                booking.cancelled_by = getattr(actor, "id", None)

        logger.info("Booking %s cancelled by user %s", booking.id, getattr(actor, "id", None))
        return booking

    def _check_cancellable(self, booking):
        if booking.status == "cancelled":
            raise PolicyViolation("Booking is already cancelled", code="already_cancelled")
        if booking.status not in BLOCKING_STATUSES:
            raise PolicyViolation(
                "Cannot cancel a booking that has already started or completed",
                code="not_cancellable",
                details={"status": booking.status},
            )

        now = self.clock()
        if booking.start_time <= now:
            raise PolicyViolation("Cannot cancel a booking that has already started", code="booking_started")

        hours_remaining = hours_between(now, booking.start_time)
        if hours_remaining < self.cancel_cutoff_hours:
            raise PolicyViolation(
                f"Cannot cancel booking less than {self.cancel_cutoff_hours:g} hours before start time",
                code="cancellation_window_closed",
                details={
                    "booking_start_time": booking.start_time.isoformat(),
                    "current_time": now.isoformat(),
                    "hours_remaining": f"{hours_remaining:.2f}",
                },
                status_code=403,
            )

    # ---------- admin status update ----------
    def update_status(self, booking_id, status, actor=None) -> Booking:
        if status not in BOOKING_STATUSES:
            raise InvalidInput("Valid status is required", code="invalid_status",
                               details={"allowed": list(BOOKING_STATUSES)})

        booking = self._get_booking(booking_id)
        lines = _recorded_lines(booking)
        with self.locks.hold(*self._lock_keys(booking.court_id, booking.coach_id, lines)):
            with unit_of_work():
                db.session.refresh(booking)
                previous = booking.status
                if previous == status:
                    return booking
                if status not in TRANSITIONS.get(previous, ()):
                    raise PolicyViolation(
                        f"Cannot change status from {previous} to {status}",
                        code="invalid_transition",
                        details={"from": previous, "to": status},
                    )

                if status == "cancelled":
                    self.inventory.release(lines)
                    booking.cancelled_at = self.clock()
                    booking.cancelled_by = getattr(actor, "id", None)
                elif previous == "cancelled":
                    self._revalidate_for_confirm(booking, lines)
                    self.inventory.reserve(lines)
                    booking.cancelled_at = None
                    booking.cancelled_by = None

                booking.status = status

        logger.info("Booking %s status %s -> %s", booking.id, previous, status)
        return booking

    def _revalidate_for_confirm(self, booking, lines):
        start, end = booking.start_time, booking.end_time
        if not self.overlap.is_available("court_id", booking.court_id, start, end, exclude_booking_id=booking.id):
            raise ResourceUnavailable(
                "Court has been booked by someone else for this time slot",
                code="court_unavailable",
            )
        if booking.coach_id and not self.overlap.is_available(
                "coach_id", booking.coach_id, start, end, exclude_booking_id=booking.id):
            raise ResourceUnavailable(
                "Coach has been booked by someone else for this time slot",
                code="coach_unavailable",
            )

        availability = self.inventory.check_equipment_availability(
            lines, start, end, exclude_booking_id=booking.id, for_update=True
        )
        if not availability.available:
            raise InventoryShortage(availability.shortages)

    # ---------- payment status ----------
    def update_payment_status(self, booking_id, payment_status) -> Booking:
        if payment_status not in PAYMENT_STATUSES:
            raise InvalidInput("Valid payment status is required", code="invalid_payment_status",
                               details={"allowed": list(PAYMENT_STATUSES)})
        booking = self._get_booking(booking_id)
        with unit_of_work():
            booking.payment_status = payment_status
        return booking

    # ---------- delete ----------
    def delete_reservation(self, booking_id) -> dict:
        booking = self._get_booking(booking_id)
        lines = _recorded_lines(booking)
        with self.locks.hold(*self._lock_keys(booking.court_id, booking.coach_id, lines)):
            with unit_of_work():
                db.session.refresh(booking)
                released = booking.holds_inventory and bool(lines)
                if booking.holds_inventory:
                    self.inventory.release(lines)
                self.bookings.delete(booking)

        logger.info("Booking %s deleted (inventory released: %s)", booking_id, released)
        return {"id": booking_id, "released_inventory": released}


def get_booking_service(**overrides) -> BookingService:
    """Builds a service from the current app's configuration."""
    cfg = current_app.config
    options = dict(
        clock=cfg.get("BOOKING_CLOCK") or datetime.now,
        tax_rate=cfg.get("TAX_RATE", DEFAULT_TAX_RATE),
        cancel_cutoff_hours=cfg.get("CANCEL_CUTOFF_HOURS", 2),
        min_booking_hours=cfg.get("MIN_BOOKING_HOURS", Decimal("0.5")),
        max_booking_hours=cfg.get("MAX_BOOKING_HOURS", Decimal("4")),
        opening_hour=cfg.get("OPENING_HOUR", 8),
        closing_hour=cfg.get("CLOSING_HOUR", 22),
    )
    options.update(overrides)
    return BookingService(**options)
