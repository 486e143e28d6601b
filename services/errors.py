"""
Typed rejections raised by the booking core.

Each error carries a machine-checkable ``code``, a human readable ``detail``
and an optional ``details`` dict (e.g. shortages or hours remaining). The
Flask app turns them into JSON responses; see ``app.register_error_handlers``.
"""


class BookingError(Exception):
    status_code = 400
    default_code = "booking_error"

    def __init__(self, detail: str, code: str = None, details: dict = None, status_code: int = None):
        super().__init__(detail)
        self.detail = detail
        self.code = code or self.default_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.detail, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInput(BookingError):
    status_code = 400
    default_code = "invalid_input"


class NotFound(BookingError):
    status_code = 404
    default_code = "not_found"


class ResourceUnavailable(BookingError):
    status_code = 409
    default_code = "resource_unavailable"


class InventoryShortage(BookingError):
    status_code = 409
    default_code = "inventory_shortage"

    def __init__(self, shortages, detail: str = "Some equipment is not available"):
        super().__init__(
            detail,
            details={"shortages": [s.to_dict() for s in shortages]},
        )
        self.shortages = list(shortages)


class PolicyViolation(BookingError):
    status_code = 409
    default_code = "policy_violation"
