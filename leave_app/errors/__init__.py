"""
Error classification for the leave period lifecycle.

This module provides the exception hierarchy used across intake, persistence,
directory-service actions and the scheduler, split by how each failure is
expected to be handled.
"""

from .base import LeaveAppError, LifecycleLogicError, StartupError
from .store import ConflictError, PersistenceError, ValidationError
from .actions import (
    ActionError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
)

__all__ = [
    "LeaveAppError",
    "LifecycleLogicError",
    "StartupError",
    # Intake / persistence
    "ValidationError",
    "ConflictError",
    "PersistenceError",
    # Directory-service actions
    "ActionError",
    "TransientError",
    "PermissionDeniedError",
    "NotFoundError",
]
