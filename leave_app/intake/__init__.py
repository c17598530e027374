"""
Period request intake.

Validates raw scheduling requests and normalizes their wall-clock dates into
UTC instants before anything reaches the store.
"""
from .normalizer import PeriodRequestNormalizer

__all__ = ["PeriodRequestNormalizer"]
