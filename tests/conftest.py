from decimal import Decimal

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.coach import Coach, CoachAvailability
from models.court import Court
from models.equipment import Equipment
from models.pricing_rule import PricingRule
from models.user import Role, User
from security.session import create_session
from services.bookings import BookingService
from tests.helpers import fixed_clock


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.config["BOOKING_CLOCK"] = fixed_clock
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return BookingService(clock=fixed_clock)


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(roles=("PLAYER",), email=None):
        counter["n"] += 1
        user = User(email=email or f"user{counter['n']}@example.com", full_name="Test User")
        user.roles = [Role.query.filter_by(name=name).one() for name in roles]
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_court(app):
    counter = {"n": 0}

    def _make(base_price="2000", sport_type="badminton", status="active", **kwargs):
        counter["n"] += 1
        court = Court(
            name=kwargs.pop("name", f"Court {counter['n']}"),
            base_price=Decimal(base_price),
            sport_type=sport_type,
            status=status,
            **kwargs,
        )
        db.session.add(court)
        db.session.commit()
        return court

    return _make


@pytest.fixture
def make_coach(app):
    counter = {"n": 0}

    def _make(hourly_rate="500", sports=("badminton",), windows=(("tuesday", "08:00", "20:00"),),
              status="available", rating=4.5):
        counter["n"] += 1
        coach = Coach(
            name=f"Coach {counter['n']}",
            email=f"coach{counter['n']}@example.com",
            phone="555-0100",
            sport_specialization=list(sports),
            hourly_rate=Decimal(hourly_rate),
            status=status,
            rating=rating,
        )
        coach.availability = [
            CoachAvailability(day=day, start_time=start, end_time=end) for day, start, end in windows
        ]
        db.session.add(coach)
        db.session.commit()
        return coach

    return _make


@pytest.fixture
def make_equipment(app):
    counter = {"n": 0}

    def _make(total_stock=10, rental_price="100", equipment_type="racket", status="available"):
        counter["n"] += 1
        item = Equipment(
            name=f"Item {counter['n']}",
            equipment_type=equipment_type,
            total_stock=total_stock,
            available_stock=total_stock,
            rental_price=Decimal(rental_price),
            status=status,
        )
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def make_rule(app):
    counter = {"n": 0}

    def _make(kind, **kwargs):
        counter["n"] += 1
        kwargs.setdefault("name", f"Rule {counter['n']}")
        kwargs.setdefault("apply_to", "all")
        kwargs.setdefault("court_ids", [])
        kwargs.setdefault("sports", [])
        kwargs.setdefault("days_of_week", [])
        kwargs.setdefault("priority", 1)
        kwargs["multiplier"] = Decimal(str(kwargs.get("multiplier", "1")))
        kwargs["fixed_surcharge"] = Decimal(str(kwargs.get("fixed_surcharge", "0")))
        rule = PricingRule(kind=kind, **kwargs)
        db.session.add(rule)
        db.session.commit()
        return rule

    return _make


@pytest.fixture
def login(app):
    """Returns a test client carrying a fresh session cookie for ``user``."""
    def _login(user):
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], create_session(user.id))
        return client

    return _login
