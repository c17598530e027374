"""
Leave period data models.

Immutable records for periods as they are created and as they are stored.
"""
from .period import NewPeriod, Period

__all__ = ["NewPeriod", "Period"]
