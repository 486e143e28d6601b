from datetime import datetime
from models.db import db

RULE_KINDS = ("peak_hour", "weekend", "holiday", "special_event", "seasonal")
RULE_SCOPES = ("all", "specific_courts", "specific_sports")


class PricingRule(db.Model):
    __tablename__ = "pricing_rules"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    kind = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=True)

    apply_to = db.Column(db.String(20), nullable=False, default="all")
    court_ids = db.Column(db.JSON, nullable=False, default=list)
    sports = db.Column(db.JSON, nullable=False, default=list)  # stored, not enforced

    days_of_week = db.Column(db.JSON, nullable=False, default=list)  # 0=Sunday .. 6=Saturday
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    start_time = db.Column(db.String(5), nullable=True)  # HH:MM
    end_time = db.Column(db.String(5), nullable=True)

    multiplier = db.Column(db.Numeric(6, 3), nullable=False, default=1)
    fixed_surcharge = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    priority = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
