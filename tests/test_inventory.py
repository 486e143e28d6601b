from datetime import datetime

import pytest

from services.errors import InvalidInput
from services.inventory import EquipmentLine, InventoryLedger, normalize_lines
from services.stores import BookingStore, EquipmentStore

START = datetime(2030, 1, 2, 10, 0)
END = datetime(2030, 1, 2, 12, 0)


@pytest.fixture
def ledger(app):
    return InventoryLedger(EquipmentStore(), BookingStore())


def test_normalize_merges_duplicate_items():
    lines = normalize_lines([
        {"equipment_id": 1, "quantity": 1},
        EquipmentLine(1, 2),
        {"equipment_id": "2", "quantity": "3"},
    ])
    assert lines == [EquipmentLine(1, 3), EquipmentLine(2, 3)]


@pytest.mark.parametrize("qty", [0, -1])
def test_normalize_rejects_non_positive_quantity(qty):
    with pytest.raises(InvalidInput) as exc:
        normalize_lines([{"equipment_id": 1, "quantity": qty}])
    assert exc.value.code == "invalid_quantity"


def test_normalize_rejects_garbage():
    with pytest.raises(InvalidInput) as exc:
        normalize_lines([{"equipment_id": "x", "quantity": 1}])
    assert exc.value.code == "invalid_equipment_line"


@pytest.mark.parametrize("qty", [1.7, "2.5", "0.5"])
def test_normalize_rejects_fractional_quantity(qty):
    with pytest.raises(InvalidInput) as exc:
        normalize_lines([{"equipment_id": 1, "quantity": qty}])
    assert exc.value.code == "invalid_quantity"


@pytest.mark.parametrize("line", [
    {"equipment_id": 1.5, "quantity": 1},
    {"equipment_id": 1, "quantity": "NaN"},
    {"equipment_id": 1, "quantity": True},
    {"equipment_id": None, "quantity": 1},
])
def test_normalize_rejects_non_integer_fields(line):
    with pytest.raises(InvalidInput) as exc:
        normalize_lines([line])
    assert exc.value.code == "invalid_equipment_line"


def test_normalize_accepts_whole_floats():
    assert normalize_lines([{"equipment_id": 3, "quantity": 2.0}]) == [EquipmentLine(3, 2)]


def test_unknown_item_is_a_shortage(ledger):
    result = ledger.check_equipment_availability([{"equipment_id": 999, "quantity": 1}], START, END)

    assert not result.available
    assert [s.to_dict() for s in result.shortages] == [
        {"equipment_id": 999, "requested_qty": 1, "available_qty": 0}
    ]


def test_unavailable_item_is_a_shortage(ledger, make_equipment):
    item = make_equipment(total_stock=5, status="unavailable")

    result = ledger.check_equipment_availability([EquipmentLine(item.id, 1)], START, END)

    assert result.shortages[0].available_qty == 0


def test_fits_within_stock(ledger, make_equipment):
    item = make_equipment(total_stock=3)

    result = ledger.check_equipment_availability([EquipmentLine(item.id, 3)], START, END)

    assert result.available
    assert result.items[item.id] is item


def test_overlapping_bookings_reduce_effective_stock(service, make_user, make_court, make_equipment, ledger):
    user = make_user()
    court = make_court()
    item = make_equipment(total_stock=5)
    service.create_reservation(user.id, court.id, START, END, equipment=[{"equipment_id": item.id, "quantity": 2}])

    # persisted counter is 3, two more are committed to the overlapping window
    assert ledger.effective_available(item, START, END) == 1
    assert ledger.effective_available(item, END, datetime(2030, 1, 2, 13, 0)) == 3

    result = ledger.check_equipment_availability([EquipmentLine(item.id, 2)], START, END)
    assert result.shortages[0].to_dict() == {"equipment_id": item.id, "requested_qty": 2, "available_qty": 1}


def test_rental_preview_scales_by_duration(service, make_user, make_court, make_equipment, ledger):
    racket = make_equipment(total_stock=2, rental_price="40", equipment_type="racket")
    make_equipment(total_stock=4, rental_price="10", equipment_type="ball")
    service.create_reservation(make_user().id, make_court().id, START, END,
                               equipment=[{"equipment_id": racket.id, "quantity": 2}])

    preview = ledger.rental_preview(START, datetime(2030, 1, 2, 11, 30), equipment_type="racket")

    assert preview["available"] == []
    entry = preview["unavailable"][0]
    assert entry["id"] == racket.id
    assert str(entry["preview_cost"]) == "60.00"
    assert entry["booked_count"] == 2
    assert entry["available_count"] == 0
    assert str(preview["duration_hours"]) == "1.50"
