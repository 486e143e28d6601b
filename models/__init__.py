from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .court import Court
from .coach import Coach, CoachAvailability
from .equipment import Equipment
from .pricing_rule import PricingRule
from .booking import Booking, BookingEquipment
