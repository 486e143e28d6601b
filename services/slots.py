from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    is_available: bool

    @property
    def label(self) -> str:
        return f"{self.start:%H:%M} - {self.end:%H:%M}"

    def to_dict(self) -> dict:
        return {
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "is_available": self.is_available,
            "label": self.label,
        }


class SlotGenerator:
    """
    Fixed-size windows across the operating day, each checked against the
    court's blocking bookings. Read-only; results are advisory until a
    booking attempt re-validates.
    """

    def __init__(self, overlap_checker, opening_hour=8, closing_hour=22):
        self.overlap = overlap_checker
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour

    def iter_slots(self, court_id, day, duration_hours):
        step = timedelta(seconds=int(Decimal(str(duration_hours)) * 3600))
        midnight = datetime(day.year, day.month, day.day)
        cursor = midnight + timedelta(hours=self.opening_hour)
        closing = midnight + timedelta(hours=self.closing_hour)

        # a slot that would end after closing is not offered
        while cursor + step <= closing:
            end = cursor + step
            yield Slot(
                start=cursor,
                end=end,
                is_available=self.overlap.is_available("court_id", court_id, cursor, end),
            )
            cursor = end

    def generate_slots(self, court_id, day, duration_hours):
        return list(self.iter_slots(court_id, day, duration_hours))
