"""
Operator-side changes to courts, coaches and equipment that must respect
existing bookings.
"""
import logging
from datetime import datetime

from models import db
from models.coach import COACH_STATUSES
from services.errors import InvalidInput, NotFound, PolicyViolation
from services.locks import coach_key, court_key, equipment_key, resource_locks
from services.stores import BookingStore, CoachStore, CourtStore, EquipmentStore, unit_of_work

logger = logging.getLogger(__name__)


class ResourceAdmin:
    def __init__(self, bookings=None, courts=None, coaches=None, equipment=None, locks=None, clock=None):
        self.bookings = bookings or BookingStore()
        self.courts = courts or CourtStore()
        self.coaches = coaches or CoachStore()
        self.equipment = equipment or EquipmentStore()
        self.locks = locks or resource_locks
        self.clock = clock or datetime.now

    def retire_court(self, court_id) -> str:
        """
        Deletes a court with no booking history, otherwise marks it inactive.
        Refused while upcoming pending/confirmed bookings exist.
        """
        with self.locks.hold(court_key(court_id)):
            with unit_of_work():
                court = self.courts.get_for_update(court_id)
                if court is None:
                    raise NotFound("Court not found", code="court_not_found")
                if self.bookings.has_upcoming("court_id", court.id, self.clock()):
                    raise PolicyViolation(
                        "Cannot delete court with upcoming bookings. Please cancel bookings first.",
                        code="court_has_upcoming_bookings",
                    )
                if self._has_history("court_id", court.id):
                    court.status = "inactive"
                    return "deactivated"
                db.session.delete(court)
                return "deleted"

    def retire_coach(self, coach_id) -> str:
        with self.locks.hold(coach_key(coach_id)):
            with unit_of_work():
                coach = self.coaches.get_for_update(coach_id)
                if coach is None:
                    raise NotFound("Coach not found", code="coach_not_found")
                if self.bookings.has_upcoming("coach_id", coach.id, self.clock()):
                    raise PolicyViolation(
                        "Cannot delete coach with upcoming bookings. Please cancel bookings first.",
                        code="coach_has_upcoming_bookings",
                    )
                if self._has_history("coach_id", coach.id):
                    coach.status = "unavailable"
                    return "deactivated"
                db.session.delete(coach)
                return "deleted"

    def set_coach_status(self, coach_id, status):
        if status not in COACH_STATUSES:
            raise InvalidInput("Valid status is required", code="invalid_status",
                               details={"allowed": list(COACH_STATUSES)})

        with self.locks.hold(coach_key(coach_id)):
            with unit_of_work():
                coach = self.coaches.get_for_update(coach_id)
                if coach is None:
                    raise NotFound("Coach not found", code="coach_not_found")
                if status == "unavailable":
                    upcoming = self.bookings.count_upcoming("coach_id", coach.id, self.clock())
                    if upcoming:
                        raise PolicyViolation(
                            "Coach has upcoming bookings. Please cancel them before setting to unavailable.",
                            code="coach_has_upcoming_bookings",
                            details={"upcoming_bookings": upcoming},
                        )
                coach.status = status
        return coach

    def retire_equipment(self, equipment_id) -> str:
        with self.locks.hold(equipment_key(equipment_id)):
            with unit_of_work():
                item = self.equipment.get_for_update(equipment_id)
                if item is None:
                    raise NotFound("Equipment not found", code="equipment_not_found")
                if self.bookings.equipment_in_use(item.id):
                    raise PolicyViolation(
                        "Cannot delete equipment that is booked in upcoming bookings",
                        code="equipment_in_use",
                    )
                if self.bookings.equipment_referenced(item.id):
                    item.status = "unavailable"
                    return "deactivated"
                db.session.delete(item)
                return "deleted"

    def set_total_stock(self, equipment_id, total_stock: int):
        """
        Changes the fixed capacity of an item, keeping
        available + held-by-bookings == total.
        """
        if total_stock is None:
            raise InvalidInput("total_stock is required", code="invalid_stock")
        return self.update_equipment(equipment_id, {}, total_stock=total_stock)

    def update_equipment(self, equipment_id, changes: dict, total_stock=None):
        """
        Applies field edits and an optional capacity change as a single write;
        a rejected capacity change leaves the item untouched.
        """
        if total_stock is not None and (
                isinstance(total_stock, bool) or not isinstance(total_stock, int) or total_stock < 0):
            raise InvalidInput("total_stock must be a non-negative integer", code="invalid_stock")

        with self.locks.hold(equipment_key(equipment_id)):
            with unit_of_work():
                item = self.equipment.get_for_update(equipment_id)
                if item is None:
                    raise NotFound("Equipment not found", code="equipment_not_found")
                if total_stock is not None:
                    held = self.bookings.held_quantity(item.id)
                    if total_stock < held:
                        raise InvalidInput(
                            f"total_stock cannot be lower than the {held} units held by bookings",
                            code="invalid_stock",
                            details={"held": held},
                        )
                    item.total_stock = total_stock
                    item.available_stock = total_stock - held
                for field, value in changes.items():
                    setattr(item, field, value)

        if total_stock is not None:
            logger.info("Equipment %s total stock set to %s", equipment_id, total_stock)
        return item

    def _has_history(self, resource_key, resource_id) -> bool:
        return self.bookings.has_any(resource_key, resource_id)
