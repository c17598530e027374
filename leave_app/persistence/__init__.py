"""Persistence layer for leave periods."""
from .period_store import PeriodStore

__all__ = ["PeriodStore"]
