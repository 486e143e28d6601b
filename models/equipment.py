from datetime import datetime
from models.db import db

EQUIPMENT_TYPES = ("racket", "shoes", "ball", "other")
EQUIPMENT_STATUSES = ("available", "low_stock", "unavailable")


class Equipment(db.Model):
    __tablename__ = "equipment"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    equipment_type = db.Column(db.String(20), nullable=False, default="other")

    total_stock = db.Column(db.Integer, nullable=False)
    # coarse counter: decremented on booking, restored on cancel/delete, not time-aware
    available_stock = db.Column(db.Integer, nullable=False)

    rental_price = db.Column(db.Numeric(10, 2), nullable=False)  # per hour
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="available")

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        db.CheckConstraint("available_stock >= 0", name="ck_equipment_available_non_negative"),
        db.CheckConstraint("total_stock >= 0", name="ck_equipment_total_non_negative"),
    )
