"""Base error classes shared by every component."""

from typing import Any, Dict, Optional


class LeaveAppError(Exception):
    """Base class for all leave app errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class LifecycleLogicError(LeaveAppError):
    """A status / due-kind pair with no defined transition reached the state machine."""

    def __init__(self, message: str, current_status: Optional[str] = None,
                 due_kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_status = current_status
        self.due_kind = due_kind
        self.recoverable = False


class StartupError(LeaveAppError):
    """Fatal configuration or authentication failure; the process cannot run."""

    def __init__(self, message: str, component: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.component = component
        self.recoverable = False
