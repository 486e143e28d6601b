import threading
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.booking import Booking
from models.court import Court
from models.equipment import Equipment
from models.user import Role, User
from services.bookings import BookingService
from services.errors import (
    InvalidInput,
    InventoryShortage,
    NotFound,
    PolicyViolation,
    ResourceUnavailable,
)
from services.stores import BookingStore

from tests.helpers import NOW, fixed_clock

SATURDAY_10 = datetime(2030, 1, 5, 10, 0)
SATURDAY_12 = datetime(2030, 1, 5, 12, 0)


def held(item_id):
    return BookingStore().held_quantity(item_id)


def test_weekend_booking_is_priced_and_persisted(service, make_user, make_court, make_rule):
    make_rule("weekend", days_of_week=[0, 6], multiplier="1.3")
    court = make_court(base_price="2000")

    booking = service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12)

    assert booking.status == "confirmed"
    assert booking.payment_status == "pending"
    assert booking.base_price == Decimal("4000.00")
    assert booking.weekend_fee == Decimal("1200.00")
    assert booking.tax == Decimal("520.00")
    assert booking.total == Decimal("5720.00")


def test_quote_matches_created_booking(service, make_user, make_court, make_rule, make_equipment):
    make_rule("peak_hour", start_time="10:00", end_time="12:00", multiplier="1.2")
    court = make_court()
    item = make_equipment(rental_price="75")
    lines = [{"equipment_id": item.id, "quantity": 2}]

    quote = service.price_quote(court.id, SATURDAY_10, SATURDAY_12, equipment=lines)
    booking = service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12, equipment=lines)

    assert booking.total == quote.total
    assert booking.equipment_fee == quote.equipment_fee == Decimal("150.00")


def test_quote_with_unknown_equipment(service, make_court):
    with pytest.raises(NotFound) as exc:
        service.price_quote(make_court().id, SATURDAY_10, SATURDAY_12,
                            equipment=[{"equipment_id": 42, "quantity": 1}])
    assert exc.value.code == "equipment_not_found"


def test_start_one_minute_in_past_rejected(service, make_user, make_court):
    start = NOW - timedelta(minutes=1)

    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, start, start + timedelta(hours=1))
    assert exc.value.code == "start_in_past"
    assert Booking.query.count() == 0


def test_start_at_current_instant_rejected(service, make_user, make_court):
    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, NOW, NOW + timedelta(hours=1))
    assert exc.value.code == "start_in_past"
    assert Booking.query.count() == 0


@pytest.mark.parametrize("start,end,code", [
    (SATURDAY_12, SATURDAY_10, "invalid_window"),
    (SATURDAY_10, SATURDAY_10, "invalid_window"),
    (SATURDAY_10, SATURDAY_10 + timedelta(minutes=15), "invalid_duration"),
    (SATURDAY_10, SATURDAY_10 + timedelta(hours=5), "invalid_duration"),
    (None, SATURDAY_12, "missing_fields"),
])
def test_invalid_windows(service, make_user, make_court, start, end, code):
    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, start, end)
    assert exc.value.code == code


def test_negative_discount_rejected(service, make_user, make_court):
    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12, discount="-5")
    assert exc.value.code == "invalid_discount"


@pytest.mark.parametrize("discount", ["NaN", "Infinity", "lots"])
def test_non_numeric_discount_rejected(service, make_user, make_court, discount):
    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12, discount=discount)
    assert exc.value.code == "invalid_discount"
    assert Booking.query.count() == 0


def test_discount_above_price_rejected(service, make_user, make_court):
    court = make_court(base_price="2000")

    with pytest.raises(InvalidInput) as exc:
        service.price_quote(court.id, SATURDAY_10, SATURDAY_12, discount="4000.01")
    assert exc.value.code == "invalid_discount"

    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12, discount="5000")
    assert exc.value.code == "invalid_discount"
    assert exc.value.details == {"discount": "5000.00", "price": "4000.00"}
    assert Booking.query.count() == 0


def test_discount_equal_to_price_is_free(service, make_user, make_court):
    booking = service.create_reservation(make_user().id, make_court(base_price="2000").id,
                                         SATURDAY_10, SATURDAY_12, discount="4000")

    assert booking.total == Decimal("0.00")
    assert booking.tax == Decimal("0.00")


def test_fractional_equipment_quantity_rejected(service, make_user, make_court, make_equipment):
    item = make_equipment(total_stock=5)

    with pytest.raises(InvalidInput) as exc:
        service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12,
                                   equipment=[{"equipment_id": item.id, "quantity": 1.7}])
    assert exc.value.code == "invalid_quantity"
    assert Booking.query.count() == 0
    assert db.session.get(Equipment, item.id).available_stock == 5


def test_unknown_and_inactive_courts(service, make_user, make_court):
    with pytest.raises(NotFound):
        service.create_reservation(make_user().id, 999, SATURDAY_10, SATURDAY_12)

    court = make_court(status="maintenance")
    with pytest.raises(ResourceUnavailable) as exc:
        service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12)
    assert exc.value.code == "court_inactive"


def test_overlapping_court_booking_rejected(service, make_user, make_court):
    court = make_court()
    service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12)

    with pytest.raises(ResourceUnavailable) as exc:
        service.create_reservation(make_user().id, court.id, SATURDAY_10 + timedelta(hours=1),
                                   SATURDAY_12 + timedelta(hours=1))
    assert exc.value.code == "court_unavailable"

    # adjacent windows are fine
    adjacent = service.create_reservation(make_user().id, court.id, SATURDAY_12, SATURDAY_12 + timedelta(hours=1))
    assert adjacent.status == "confirmed"


def test_second_request_for_same_equipment_is_short(service, make_user, make_court, make_equipment):
    item = make_equipment(total_stock=2)
    lines = [{"equipment_id": item.id, "quantity": 2}]
    service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12, equipment=lines)

    with pytest.raises(InventoryShortage) as exc:
        service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12, equipment=lines)

    assert exc.value.to_dict()["details"]["shortages"] == [
        {"equipment_id": item.id, "requested_qty": 2, "available_qty": 0}
    ]
    assert Booking.query.count() == 1
    assert db.session.get(Equipment, item.id).available_stock == 0


def test_cancel_90_minutes_before_start(service, make_user, make_court):
    user = make_user()
    start = NOW + timedelta(minutes=90)
    booking = service.create_reservation(user.id, make_court().id, start, start + timedelta(hours=1))

    with pytest.raises(PolicyViolation) as exc:
        service.cancel_reservation(booking.id, user)

    err = exc.value
    assert err.code == "cancellation_window_closed"
    assert err.status_code == 403
    assert err.details["hours_remaining"] == "1.50"
    assert err.details["booking_start_time"] == "2030-01-01T10:30:00"
    assert db.session.get(Booking, booking.id).status == "confirmed"


def test_cancel_releases_equipment(service, make_user, make_court, make_equipment):
    user = make_user()
    item = make_equipment(total_stock=4)
    booking = service.create_reservation(user.id, make_court().id, SATURDAY_10, SATURDAY_12,
                                         equipment=[{"equipment_id": item.id, "quantity": 3}])
    assert db.session.get(Equipment, item.id).available_stock == 1

    cancelled = service.cancel_reservation(booking.id, user)

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at == NOW
    assert cancelled.cancelled_by == user.id
    assert db.session.get(Equipment, item.id).available_stock == 4

    with pytest.raises(PolicyViolation) as exc:
        service.cancel_reservation(booking.id, user)
    assert exc.value.code == "already_cancelled"


def test_cancel_by_stranger_looks_like_missing_booking(service, make_user, make_court):
    booking = service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12)

    with pytest.raises(NotFound):
        service.cancel_reservation(booking.id, make_user())

    staff = make_user(roles=("STAFF",))
    assert service.cancel_reservation(booking.id, staff).status == "cancelled"


def test_cancel_reconfirm_round_trip(service, make_user, make_court, make_equipment):
    user = make_user()
    item = make_equipment(total_stock=3)
    booking = service.create_reservation(user.id, make_court().id, SATURDAY_10, SATURDAY_12,
                                         equipment=[{"equipment_id": item.id, "quantity": 2}])

    service.update_status(booking.id, "cancelled")
    assert db.session.get(Equipment, item.id).available_stock == 3

    restored = service.update_status(booking.id, "confirmed")

    assert restored.status == "confirmed"
    assert restored.cancelled_at is None
    assert db.session.get(Equipment, item.id).available_stock == 1


def test_reconfirm_fails_when_court_was_taken(service, make_user, make_court):
    court = make_court()
    first = service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12)
    service.update_status(first.id, "cancelled")
    service.create_reservation(make_user().id, court.id, SATURDAY_10, SATURDAY_12)

    with pytest.raises(ResourceUnavailable):
        service.update_status(first.id, "confirmed")
    assert db.session.get(Booking, first.id).status == "cancelled"


def test_status_transitions(service, make_user, make_court):
    booking = service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12)

    with pytest.raises(InvalidInput):
        service.update_status(booking.id, "archived")

    assert service.update_status(booking.id, "confirmed").status == "confirmed"
    assert service.update_status(booking.id, "completed").status == "completed"

    with pytest.raises(PolicyViolation) as exc:
        service.update_status(booking.id, "cancelled")
    assert exc.value.code == "invalid_transition"


def test_payment_status(service, make_user, make_court):
    booking = service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12)

    assert service.update_payment_status(booking.id, "paid").payment_status == "paid"
    with pytest.raises(InvalidInput):
        service.update_payment_status(booking.id, "maybe")


def test_delete_releases_only_held_inventory(service, make_user, make_court, make_equipment):
    item = make_equipment(total_stock=6)
    lines = [{"equipment_id": item.id, "quantity": 2}]
    active = service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12, equipment=lines)
    cancelled = service.create_reservation(make_user().id, make_court().id, SATURDAY_10, SATURDAY_12,
                                           equipment=lines)
    service.update_status(cancelled.id, "cancelled")

    assert service.delete_reservation(cancelled.id) == {"id": cancelled.id, "released_inventory": False}
    assert db.session.get(Equipment, item.id).available_stock == 4

    assert service.delete_reservation(active.id) == {"id": active.id, "released_inventory": True}
    assert db.session.get(Equipment, item.id).available_stock == 6
    assert Booking.query.count() == 0


def test_inventory_is_conserved(service, make_user, make_court, make_equipment):
    item = make_equipment(total_stock=6)
    user = make_user()
    bookings = [
        service.create_reservation(user.id, make_court().id, SATURDAY_10 + timedelta(days=day),
                                   SATURDAY_12 + timedelta(days=day),
                                   equipment=[{"equipment_id": item.id, "quantity": 2}])
        for day in range(3)
    ]
    service.cancel_reservation(bookings[0].id, user)
    service.update_status(bookings[1].id, "completed")

    stored = db.session.get(Equipment, item.id)
    assert stored.available_stock + held(item.id) == stored.total_stock


def test_concurrent_requests_book_a_court_once(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"

    race_app = create_app(FileConfig)
    with race_app.app_context():
        user = User(email="racer@example.com", roles=[Role.query.filter_by(name="PLAYER").one()])
        court = Court(name="Centre", base_price=Decimal("1000"))
        db.session.add_all([user, court])
        db.session.commit()
        user_id, court_id = user.id, court.id

    outcomes = []
    barrier = threading.Barrier(5)

    def attempt():
        with race_app.app_context():
            barrier.wait()
            try:
                BookingService(clock=fixed_clock).create_reservation(user_id, court_id, SATURDAY_10, SATURDAY_12)
                outcomes.append("booked")
            except ResourceUnavailable:
                outcomes.append("rejected")
            finally:
                db.session.remove()

    threads = [threading.Thread(target=attempt) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["booked", "rejected", "rejected", "rejected", "rejected"]
    with race_app.app_context():
        assert Booking.query.filter_by(court_id=court_id).count() == 1
        db.drop_all()
