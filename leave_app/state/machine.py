"""
Lifecycle state machine for leave periods.

Pure decision logic: given the current status, the boundary that came due and
the outcomes of the actions attempted for it, return the next status or
``None`` for "no change". Nothing here touches the store or the directory
service.
"""

from typing import Iterable, Optional

from ..errors import LifecycleLogicError
from .models import ActionName, ActionOutcome, DueKind, PeriodStatus, TransitionRule

TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(
        from_status=PeriodStatus.PENDING,
        due_kind=DueKind.START,
        to_status=PeriodStatus.ACTIVE,
        required_actions=(ActionName.APPLY_MARKER, ActionName.NOTIFY),
    ),
    TransitionRule(
        from_status=PeriodStatus.ACTIVE,
        due_kind=DueKind.END,
        to_status=PeriodStatus.COMPLETED,
        required_actions=(ActionName.CLEAR_MARKER, ActionName.NOTIFY),
    ),
)


def get_rule(current_status: PeriodStatus, due_kind: DueKind) -> TransitionRule:
    """
    Look up the transition defined for a status / due-kind pair.

    Raises:
        LifecycleLogicError: if no transition is defined for the pair
    """
    for rule in TRANSITION_RULES:
        if rule.from_status == current_status and rule.due_kind == due_kind:
            return rule

    raise LifecycleLogicError(
        f"No transition defined from {PeriodStatus(current_status).value} "
        f"on {DueKind(due_kind).value}",
        current_status=PeriodStatus(current_status).value,
        due_kind=DueKind(due_kind).value,
    )


def required_actions(current_status: PeriodStatus, due_kind: DueKind) -> tuple[ActionName, ...]:
    """Actions that must all succeed before the transition commits."""
    return get_rule(current_status, due_kind).required_actions


def decide(
    current_status: PeriodStatus,
    due_kind: DueKind,
    outcomes: Iterable[ActionOutcome]
) -> Optional[PeriodStatus]:
    """
    Decide the next status for a period.

    All-or-nothing: every required action must have a successful outcome,
    otherwise the result is ``None`` and the period is re-evaluated on the
    next tick.

    Args:
        current_status: Status the period was read with
        due_kind: Which boundary came due
        outcomes: Outcomes of the actions attempted this sweep

    Returns:
        The target status, or None for no change

    Raises:
        LifecycleLogicError: for a pair with no defined transition
    """
    rule = get_rule(current_status, due_kind)

    succeeded = {outcome.action for outcome in outcomes if outcome.succeeded}
    if all(action in succeeded for action in rule.required_actions):
        return rule.to_status
    return None


def is_valid_transition(from_status: PeriodStatus, to_status: PeriodStatus) -> bool:
    """Whether ``from_status -> to_status`` is an edge of the lifecycle."""
    return any(
        rule.from_status == from_status and rule.to_status == to_status
        for rule in TRANSITION_RULES
    )
