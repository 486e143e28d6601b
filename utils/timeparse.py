import re
from datetime import date, datetime

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_iso(dt_str: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00"; aware values are made naive local
    value = datetime.fromisoformat(dt_str)
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def parse_day(date_str: str) -> date:
    return date.fromisoformat(date_str[:10])


def is_hhmm(value) -> bool:
    return isinstance(value, str) and _HHMM.match(value) is not None


def minutes_of(value):
    """Minutes since midnight for an ``HH:MM`` string, None when malformed."""
    if not is_hhmm(value):
        return None
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)
