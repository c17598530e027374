"""
Intake and persistence error classifications.

Validation errors are raised synchronously when a period is created and never
reach the scheduler. Conflict and persistence errors are raised by the store
and resolve themselves on a later tick.
"""

from typing import Any, Optional

from .base import LeaveAppError


class ValidationError(LeaveAppError):
    """Malformed or logically invalid period input."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.recoverable = False


class ConflictError(LeaveAppError):
    """Optimistic-concurrency failure on a status update."""

    def __init__(self, message: str, period_id: Optional[str] = None,
                 expected_status: Optional[str] = None,
                 actual_status: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.period_id = period_id
        self.expected_status = expected_status
        self.actual_status = actual_status


class PersistenceError(LeaveAppError):
    """Database failures while reading or writing periods."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
