"""
Equipment stock accounting.

Two counters guard equipment: the persisted ``available_stock`` column, which
is decremented on every booking regardless of time, and a window-aware sum
of quantities committed by overlapping pending/confirmed bookings. A request
must fit both.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

from models.booking import BLOCKING_STATUSES
from services.errors import InvalidInput
from services.pricing import hours_between, to_money

logger = logging.getLogger(__name__)


def _as_number(value) -> Decimal:
    # 1.7 must not silently become 1
    if value is None or isinstance(value, bool):
        raise TypeError("missing number")
    number = Decimal(str(value).strip())
    if not number.is_finite():
        raise ValueError("not a finite number")
    return number


@dataclass(frozen=True)
class EquipmentLine:
    equipment_id: int
    quantity: int


@dataclass(frozen=True)
class Shortage:
    equipment_id: int
    requested_qty: int
    available_qty: int

    def to_dict(self) -> dict:
        return {
            "equipment_id": self.equipment_id,
            "requested_qty": self.requested_qty,
            "available_qty": self.available_qty,
        }


@dataclass
class EquipmentAvailability:
    available: bool
    shortages: List[Shortage] = field(default_factory=list)
    items: Dict[int, object] = field(default_factory=dict)


def normalize_lines(raw_lines) -> List[EquipmentLine]:
    """
    Accepts EquipmentLine objects or dicts with ``equipment_id`` and
    ``quantity``; merges repeated items and rejects non-positive quantities.
    """
    merged: Dict[int, int] = {}
    for raw in raw_lines or []:
        if isinstance(raw, EquipmentLine):
            item_id, qty = raw.equipment_id, raw.quantity
        elif isinstance(raw, dict):
            item_id = raw.get("equipment_id")
            qty = raw.get("quantity")
        else:
            raise InvalidInput("Equipment lines must be objects with equipment_id and quantity")

        try:
            item_id = _as_number(item_id)
            qty = _as_number(qty)
        except (ArithmeticError, TypeError, ValueError):
            raise InvalidInput("equipment_id and quantity must be integers", code="invalid_equipment_line")

        if item_id != item_id.to_integral_value():
            raise InvalidInput("equipment_id must be an integer", code="invalid_equipment_line")
        if qty != qty.to_integral_value():
            raise InvalidInput(
                f"Quantity for equipment {int(item_id)} must be a whole number",
                code="invalid_quantity",
                details={"equipment_id": int(item_id), "quantity": str(qty)},
            )
        item_id, qty = int(item_id), int(qty)

        if qty <= 0:
            raise InvalidInput(
                f"Quantity for equipment {item_id} must be at least 1",
                code="invalid_quantity",
                details={"equipment_id": item_id, "quantity": qty},
            )
        merged[item_id] = merged.get(item_id, 0) + qty

    return [EquipmentLine(item_id, qty) for item_id, qty in merged.items()]


class InventoryLedger:
    def __init__(self, equipment_store, booking_store):
        self.equipment = equipment_store
        self.bookings = booking_store

    def effective_available(self, item, start, end, exclude_booking_id=None) -> int:
        committed = self.bookings.committed_quantity(
            item.id, start, end,
            statuses=BLOCKING_STATUSES,
            exclude_booking_id=exclude_booking_id,
        )
        return max(0, item.available_stock - committed)

    def check_equipment_availability(self, lines, start, end,
                                     exclude_booking_id=None, for_update=False) -> EquipmentAvailability:
        lines = normalize_lines(lines)
        result = EquipmentAvailability(available=True)

        for line in lines:
            if for_update:
                item = self.equipment.get_for_update(line.equipment_id)
            else:
                item = self.equipment.get(line.equipment_id)

            if item is None or item.status == "unavailable":
                result.shortages.append(Shortage(line.equipment_id, line.quantity, 0))
                continue

            result.items[item.id] = item
            effective = self.effective_available(item, start, end, exclude_booking_id)

            # (a) coarse persisted counter, (b) window-aware effective count
            if item.available_stock < line.quantity or effective < line.quantity:
                result.shortages.append(Shortage(item.id, line.quantity, effective))

        result.available = not result.shortages
        if result.shortages:
            logger.info("Equipment shortage for window %s-%s: %s", start, end, result.shortages)
        return result

    def reserve(self, lines):
        for line in normalize_lines(lines):
            self.equipment.adjust_stock(line.equipment_id, -line.quantity)

    def release(self, lines):
        for line in normalize_lines(lines):
            self.equipment.adjust_stock(line.equipment_id, line.quantity)

    def rental_preview(self, start, end, equipment_type=None) -> dict:
        """
        Pre-booking quote scaled by duration (rental_price x hours).

        This is a preview only; the fee stored on a booking is the flat
        per-booking equipment fee computed by the pricing engine.
        """
        hours = hours_between(start, end)
        available, unavailable = [], []

        for item in self.equipment.list(equipment_type):
            if item.status == "unavailable":
                continue
            committed = self.bookings.committed_quantity(item.id, start, end)
            effective = max(0, item.available_stock - committed)
            entry = {
                "id": item.id,
                "name": item.name,
                "equipment_type": item.equipment_type,
                "hourly_rate": to_money(item.rental_price),
                "preview_cost": to_money(item.rental_price * hours),
                "total_stock": item.total_stock,
                "available_stock": item.available_stock,
                "booked_count": committed,
                "available_count": effective,
                "status": item.status,
            }
            (available if effective > 0 else unavailable).append(entry)

        return {
            "available": available,
            "unavailable": unavailable,
            "duration_hours": to_money(hours),
        }
