from models.booking import BLOCKING_STATUSES


def windows_overlap(start_a, end_a, start_b, end_b) -> bool:
    """Half-open windows [start, end); touching windows do not overlap."""
    return start_a < end_b and start_b < end_a


class OverlapChecker:
    """
    Answers "is this resource free for [start, end)?" for courts and coaches
    alike. The resource is named by the booking column it is keyed on.
    """

    def __init__(self, bookings):
        self.bookings = bookings

    def conflicts(self, resource_key, resource_id, start, end,
                  blocking_statuses=BLOCKING_STATUSES, exclude_booking_id=None):
        return self.bookings.find_overlapping(
            resource_key,
            resource_id,
            start,
            end,
            statuses=blocking_statuses,
            exclude_booking_id=exclude_booking_id,
        )

    def is_available(self, resource_key, resource_id, start, end,
                     blocking_statuses=BLOCKING_STATUSES, exclude_booking_id=None) -> bool:
        if resource_id is None:
            return True
        return not self.conflicts(
            resource_key, resource_id, start, end,
            blocking_statuses=blocking_statuses,
            exclude_booking_id=exclude_booking_id,
        )
