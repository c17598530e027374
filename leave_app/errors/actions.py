"""
Directory-service action error classifications.

Every adapter operation either succeeds or raises one of these. The
``recoverable`` flag tells the scheduler whether the next tick can be
expected to fix the failure without an operator.
"""

from typing import Optional

from .base import LeaveAppError


class ActionError(LeaveAppError):
    """Base class for failures of an external marker or notification action."""

    def __init__(self, message: str, account_id: Optional[str] = None,
                 action: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.account_id = account_id
        self.action = action


class TransientError(ActionError):
    """Network or service hiccup; retried on the next tick."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.recoverable = True


class PermissionDeniedError(ActionError):
    """The automation lacks the rights or rank to change the marker."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = False


class NotFoundError(ActionError):
    """Target account (or marker) does not exist or cannot be reached."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = False
