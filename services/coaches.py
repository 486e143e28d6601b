from dataclasses import dataclass

from models.coach import WEEKDAYS
from utils.timeparse import minutes_of


@dataclass(frozen=True)
class SecondaryAvailability:
    available: bool
    reason: str = None

    def to_dict(self) -> dict:
        body = {"available": self.available}
        if self.reason:
            body["reason"] = self.reason
        return body


def _minutes_into_day(start, moment) -> int:
    days = (moment.date() - start.date()).days
    return days * 24 * 60 + moment.hour * 60 + moment.minute


class CoachScheduler:
    def __init__(self, coach_store, overlap_checker):
        self.coaches = coach_store
        self.overlap = overlap_checker

    def check(self, coach, start, end, exclude_booking_id=None) -> SecondaryAvailability:
        if coach.status != "available":
            return SecondaryAvailability(False, "Coach is currently unavailable")

        day_name = WEEKDAYS[start.weekday()]
        # only the first active window of the day is consulted
        window = coach.window_for(day_name)
        if window is None:
            return SecondaryAvailability(False, f"Coach is not available on {day_name}")

        window_start = minutes_of(window.start_time)
        window_end = minutes_of(window.end_time)
        if window_start is None or window_end is None:
            return SecondaryAvailability(False, "Coach availability window is malformed")

        if _minutes_into_day(start, start) < window_start or _minutes_into_day(start, end) > window_end:
            return SecondaryAvailability(
                False,
                f"Coach is only available from {window.start_time} to {window.end_time} on {day_name}",
            )

        if not self.overlap.is_available("coach_id", coach.id, start, end, exclude_booking_id=exclude_booking_id):
            return SecondaryAvailability(False, "Coach is already booked for the selected time")

        return SecondaryAvailability(True)

    def available_for(self, court, start, end):
        return [
            coach for coach in self.coaches.find_by_sport(court.sport_type)
            if self.check(coach, start, end).available
        ]
