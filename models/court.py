from datetime import datetime
from models.db import db

COURT_TYPES = ("indoor", "outdoor")
SPORT_TYPES = ("badminton", "tennis", "basketball", "squash")
COURT_STATUSES = ("active", "maintenance", "inactive")


class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    court_type = db.Column(db.String(20), nullable=False, default="indoor")
    sport_type = db.Column(db.String(30), nullable=False, default="badminton")

    base_price = db.Column(db.Numeric(10, 2), nullable=False)  # per hour
    description = db.Column(db.Text, nullable=True)
    amenities = db.Column(db.JSON, nullable=False, default=list)

    status = db.Column(db.String(20), nullable=False, default="active")
    # status values: active, maintenance, inactive

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    @property
    def is_bookable(self) -> bool:
        return self.status == "active"
