"""
Lifecycle data models for leave periods.

This module defines the status and due-kind enumerations and the immutable
outcome records the scheduler hands to the state machine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import ActionError


class PeriodStatus(str, Enum):
    """Persisted lifecycle status of a period."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is PeriodStatus.COMPLETED


class DueKind(str, Enum):
    """Which boundary of a period has come due."""
    START = "start"
    END = "end"

    @property
    def boundary_field(self) -> str:
        """Name of the period field compared against the reference instant."""
        return "start_time" if self is DueKind.START else "end_time"


class ActionName(str, Enum):
    """External actions the adapter performs."""
    APPLY_MARKER = "apply_marker"
    CLEAR_MARKER = "clear_marker"
    NOTIFY = "notify"


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one external action attempt."""
    action: ActionName
    succeeded: bool
    error: Optional[ActionError] = None

    @classmethod
    def success(cls, action: ActionName) -> "ActionOutcome":
        return cls(action=action, succeeded=True)

    @classmethod
    def failure(cls, action: ActionName, error: ActionError) -> "ActionOutcome":
        return cls(action=action, succeeded=False, error=error)

    @property
    def recoverable(self) -> bool:
        """Whether a later retry may succeed without operator help."""
        return self.succeeded or bool(self.error and self.error.recoverable)


@dataclass(frozen=True)
class TransitionRule:
    """A defined edge of the lifecycle graph."""
    from_status: PeriodStatus
    due_kind: DueKind
    to_status: PeriodStatus
    required_actions: tuple[ActionName, ...]
