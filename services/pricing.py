"""
Layered price evaluation for a court booking.

The engine walks active pricing rules from highest to lowest priority. Each
rule kind owns a single fee slot, and every applicable rule overwrites the
slot of its kind, so the lowest-priority applicable rule of a kind is the one
that ends up priced.
"""
from dataclasses import dataclass, asdict
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

TWO_PLACES = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)
DEFAULT_TAX_RATE = Decimal("0.10")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def hours_between(start, end) -> Decimal:
    return Decimal((end - start) // timedelta(seconds=1)) / SECONDS_PER_HOUR


def day_of_week(moment) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def parse_hour(value):
    """Hour part of an ``HH:MM`` string, or None when missing or malformed."""
    if not value or not isinstance(value, str):
        return None
    try:
        hour = int(value.split(":")[0])
    except ValueError:
        return None
    if not 0 <= hour <= 24:
        return None
    return hour


def is_hour_in_range(hour: int, start_time, end_time) -> bool:
    start_hour = parse_hour(start_time)
    end_hour = parse_hour(end_time)
    if start_hour is None or end_hour is None:
        return False
    return start_hour <= hour < end_hour


@dataclass(frozen=True)
class PriceBreakdown:
    duration: Decimal
    base_price: Decimal
    peak_hour_fee: Decimal
    weekend_fee: Decimal
    special_event_fee: Decimal
    equipment_fee: Decimal
    coach_fee: Decimal
    discount: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


class PricingEngine:
    def __init__(self, rule_store, tax_rate=DEFAULT_TAX_RATE):
        self.rules = rule_store
        self.tax_rate = to_decimal(tax_rate)

    @staticmethod
    def _court_ids(rule):
        try:
            return {int(c) for c in (rule.court_ids or [])}
        except (TypeError, ValueError):
            return set()

    def rule_applies(self, rule, court, moment) -> bool:
        if rule.apply_to == "specific_courts" and court.id not in self._court_ids(rule):
            return False
        # "specific_sports" is accepted but not enforced: it prices like "all"

        if rule.start_date and rule.end_date:
            if not (rule.start_date <= moment.date() <= rule.end_date):
                return False
        return True

    @staticmethod
    def _surcharge_or_multiplier(rule, base: Decimal) -> Decimal:
        fixed = to_decimal(rule.fixed_surcharge)
        if fixed:
            return fixed
        return base * to_decimal(rule.multiplier) - base

    def _days(self, rule):
        try:
            return {int(d) for d in (rule.days_of_week or [])}
        except (TypeError, ValueError):
            return set()

    def calculate_price(self, court, start, end, equipment_lines=(), coach=None, discount=0) -> PriceBreakdown:
        """
        ``equipment_lines`` is a sequence of ``(equipment, quantity)`` pairs.
        """
        duration = hours_between(start, end)
        base = to_decimal(court.base_price) * duration

        peak_hour_fee = Decimal(0)
        weekend_fee = Decimal(0)
        special_event_fee = Decimal(0)

        weekday = day_of_week(start)
        hour = start.hour

        rules = sorted(self.rules.find_all_active(), key=lambda r: r.priority or 0, reverse=True)
        for rule in rules:
            if not self.rule_applies(rule, court, start):
                continue

            try:
                if rule.kind == "peak_hour":
                    if is_hour_in_range(hour, rule.start_time, rule.end_time):
                        peak_hour_fee = base * to_decimal(rule.multiplier) - base
                elif rule.kind == "weekend":
                    if weekday in self._days(rule):
                        weekend_fee = self._surcharge_or_multiplier(rule, base)
                elif rule.kind in ("holiday", "special_event"):
                    special_event_fee = self._surcharge_or_multiplier(rule, base)
                # "seasonal" rules are stored but carry no fee slot
            except (InvalidOperation, TypeError, ValueError):
                continue

        equipment_fee = Decimal(0)
        for item, quantity in equipment_lines:
            equipment_fee += to_decimal(item.rental_price) * int(quantity)

        coach_fee = to_decimal(coach.hourly_rate) * duration if coach is not None else Decimal(0)

        parts = [to_money(v) for v in (base, peak_hour_fee, weekend_fee, special_event_fee, equipment_fee, coach_fee)]
        discount = to_money(discount)
        subtotal = sum(parts, Decimal(0)) - discount
        tax = to_money(subtotal * self.tax_rate)

        return PriceBreakdown(
            duration=duration.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            base_price=parts[0],
            peak_hour_fee=parts[1],
            weekend_fee=parts[2],
            special_event_fee=parts[3],
            equipment_fee=parts[4],
            coach_fee=parts[5],
            discount=discount,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
        )
