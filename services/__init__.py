from .errors import (
    BookingError,
    InvalidInput,
    NotFound,
    ResourceUnavailable,
    InventoryShortage,
    PolicyViolation,
)
from .bookings import BookingService, get_booking_service
