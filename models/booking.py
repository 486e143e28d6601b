from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed", "no_show")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

# statuses that hold a court/coach and count against equipment windows
BLOCKING_STATUSES = ("pending", "confirmed")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    coach_id = db.Column(db.Integer, db.ForeignKey("coaches.id"), nullable=True, index=True)

    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    duration_hours = db.Column(db.Numeric(5, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="confirmed", index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="pending")

    # price breakdown, smallest unit is the cent
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    peak_hour_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    weekend_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    special_event_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    equipment_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    coach_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    notes = db.Column(db.Text, nullable=True)

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    equipment_lines = db.relationship(
        "BookingEquipment",
        order_by="BookingEquipment.id",
        cascade="all, delete-orphan",
        back_populates="booking",
    )

    __table_args__ = (
        db.CheckConstraint("start_time < end_time", name="ck_booking_window"),
        db.Index("ix_bookings_court_window", "court_id", "start_time", "end_time"),
    )

    @property
    def holds_inventory(self) -> bool:
        return self.status != "cancelled"


class BookingEquipment(db.Model):
    __tablename__ = "booking_equipment"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    booking = db.relationship("Booking", back_populates="equipment_lines")

    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_booking_equipment_quantity"),
    )
