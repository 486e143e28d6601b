from datetime import datetime
from models.db import db

COACH_STATUSES = ("available", "unavailable", "on_leave")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Coach(db.Model):
    __tablename__ = "coaches"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30), nullable=False)

    sport_specialization = db.Column(db.JSON, nullable=False, default=list)
    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="available")

    experience_years = db.Column(db.Integer, nullable=True)
    rating = db.Column(db.Float, nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    # insertion order matters: the first active window for a day is the one consulted
    availability = db.relationship(
        "CoachAvailability",
        order_by="CoachAvailability.id",
        cascade="all, delete-orphan",
        back_populates="coach",
    )

    def window_for(self, day_name: str):
        for window in self.availability:
            if window.day == day_name and window.is_active:
                return window
        return None


class CoachAvailability(db.Model):
    __tablename__ = "coach_availability"

    id = db.Column(db.Integer, primary_key=True)
    coach_id = db.Column(db.Integer, db.ForeignKey("coaches.id"), nullable=False, index=True)

    day = db.Column(db.String(10), nullable=False)  # monday..sunday
    start_time = db.Column(db.String(5), nullable=False)  # HH:MM
    end_time = db.Column(db.String(5), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    coach = db.relationship("Coach", back_populates="availability")
