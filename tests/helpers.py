"""Shared constants for the test suite."""
from datetime import datetime

# 2030-01-01 is a Tuesday
NOW = datetime(2030, 1, 1, 9, 0)


def fixed_clock():
    return NOW
