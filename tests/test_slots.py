from datetime import date, datetime

import pytest

from services.errors import InvalidInput, NotFound

DAY = date(2030, 1, 2)


def test_slots_cover_operating_day(service, make_court):
    court = make_court()

    slots = service.check_availability(court.id, DAY, 3)

    # 08:00-22:00 in 3 hour steps, the partial 20:00-23:00 slot is dropped
    assert [s.label for s in slots] == ["08:00 - 11:00", "11:00 - 14:00", "14:00 - 17:00", "17:00 - 20:00"]
    assert all(s.is_available for s in slots)


def test_booked_window_marks_overlapping_slots(service, make_user, make_court):
    court = make_court()
    service.create_reservation(make_user().id, court.id, datetime(2030, 1, 2, 10, 0), datetime(2030, 1, 2, 11, 0))

    slots = {s.label: s.is_available for s in service.check_availability(court.id, DAY, 1)}

    assert slots["10:00 - 11:00"] is False
    assert slots["09:00 - 10:00"] is True
    assert slots["11:00 - 12:00"] is True
    assert len(slots) == 14


def test_cancelled_bookings_do_not_block(service, make_user, make_court):
    user = make_user()
    court = make_court()
    booking = service.create_reservation(user.id, court.id, datetime(2030, 1, 2, 10, 0), datetime(2030, 1, 2, 11, 0))
    service.cancel_reservation(booking.id, user)

    assert all(s.is_available for s in service.check_availability(court.id, DAY, 1))


def test_slot_serialization(service, make_court):
    slot = service.check_availability(make_court().id, DAY, "0.5")[0]

    assert slot.to_dict() == {
        "start_time": "2030-01-02T08:00:00",
        "end_time": "2030-01-02T08:30:00",
        "is_available": True,
        "label": "08:00 - 08:30",
    }


@pytest.mark.parametrize("duration", [0, -1, 5, "abc", "NaN", "Infinity", "-Infinity"])
def test_invalid_duration(service, make_court, duration):
    with pytest.raises(InvalidInput) as exc:
        service.check_availability(make_court().id, DAY, duration)
    assert exc.value.code == "invalid_duration"


def test_unknown_court(service):
    with pytest.raises(NotFound):
        service.check_availability(404, DAY, 1)
