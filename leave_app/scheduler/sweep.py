"""
One parameterized sweep routine for both lifecycle boundaries.

A sweep captures a reference instant, queries the store for due periods in
one status, and processes them strictly one after another: attempt both
required actions, ask the state machine for a decision, and commit it with a
compare-and-swap. Failures are isolated to the record they happen on.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..actions.base import BaseActionAdapter
from ..config.defaults import MessageParams, TimeParams
from ..errors import (
    ConflictError,
    LifecycleLogicError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from ..logging.config import get_scheduler_logger, get_state_logger, log_state_transition
from ..models.period import Period
from ..persistence.period_store import PeriodStore
from ..state.machine import decide, get_rule
from ..state.models import ActionName, ActionOutcome, DueKind, PeriodStatus
from ..utils.time import format_local, get_reference_instant

logger = get_scheduler_logger(__name__)
state_logger = get_state_logger(__name__)


class RecordResult(str, Enum):
    """What happened to one due period during a sweep."""
    ADVANCED = "advanced"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class SweepSpec:
    """Configuration of one periodic task."""
    name: str
    source_status: PeriodStatus
    due_kind: DueKind
    marker_action: ActionName
    message_template: str

    @property
    def target_status(self) -> PeriodStatus:
        return get_rule(self.source_status, self.due_kind).to_status

    @property
    def boundary_field(self) -> str:
        return self.due_kind.boundary_field


def default_sweep_specs(messages: MessageParams) -> tuple[SweepSpec, SweepSpec]:
    """The start-sweep and end-sweep specs."""
    return (
        SweepSpec(
            name="start-sweep",
            source_status=PeriodStatus.PENDING,
            due_kind=DueKind.START,
            marker_action=ActionName.APPLY_MARKER,
            message_template=messages.start_template,
        ),
        SweepSpec(
            name="end-sweep",
            source_status=PeriodStatus.ACTIVE,
            due_kind=DueKind.END,
            marker_action=ActionName.CLEAR_MARKER,
            message_template=messages.end_template,
        ),
    )


@dataclass
class SweepReport:
    """Summary of one sweep."""
    task: str
    reference: datetime
    due_count: int = 0
    advanced: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    interrupted: bool = False
    failed: bool = False

    def record(self, period_id: str, result: RecordResult) -> None:
        {
            RecordResult.ADVANCED: self.advanced,
            RecordResult.UNCHANGED: self.unchanged,
            RecordResult.CONFLICT: self.conflicts,
            RecordResult.ERROR: self.errors,
        }[result].append(period_id)

    def to_dict(self) -> dict:
        return {
            "task": self.task,
            "reference": self.reference.isoformat(),
            "due_count": self.due_count,
            "advanced": len(self.advanced),
            "unchanged": len(self.unchanged),
            "conflicts": len(self.conflicts),
            "errors": len(self.errors),
            "interrupted": self.interrupted,
            "failed": self.failed,
        }


class LifecycleSweeper:
    """Runs sweeps against an injected store and action adapter."""

    def __init__(
        self,
        store: PeriodStore,
        adapter: BaseActionAdapter,
        time_params: Optional[TimeParams] = None,
        batch_size: Optional[int] = 100,
        clock: Callable[[], datetime] = get_reference_instant
    ):
        self.store = store
        self.adapter = adapter
        self.time_params = time_params or TimeParams()
        self.batch_size = batch_size
        self.clock = clock
        self.logger = logger

    def run_sweep(
        self,
        spec: SweepSpec,
        now: Optional[datetime] = None,
        stop_event: Optional[threading.Event] = None
    ) -> SweepReport:
        """
        Run one sweep.

        Args:
            spec: Which boundary / status / actions to sweep
            now: Reference instant; defaults to the clock
            stop_event: When set, the sweep stops before starting the next
                record (the current record always completes)

        Returns:
            SweepReport summarizing the per-record results
        """
        reference = get_reference_instant(now) if now is not None else self.clock()
        report = SweepReport(task=spec.name, reference=reference)
        log = self.logger.bind(task=spec.name, reference=reference.isoformat())

        try:
            due = self.store.query_due(
                spec.source_status, reference, spec.boundary_field, limit=self.batch_size
            )
        except PersistenceError as e:
            log.error("Store fetch error for due periods", error=str(e))
            report.failed = True
            return report

        report.due_count = len(due)
        if not due:
            log.debug("No due periods")
            return report

        log.info("Processing due periods", due_count=len(due))

        for index, period in enumerate(due):
            if stop_event is not None and stop_event.is_set():
                log.info("Sweep interrupted by shutdown", remaining=len(due) - index)
                report.interrupted = True
                break

            try:
                result = self.process_period(spec, period, reference)
            except (PersistenceError, LifecycleLogicError) as e:
                log.error("Failed to process period", period_id=period.id, error=str(e))
                result = RecordResult.ERROR
            except Exception:
                log.exception("Unexpected error processing period", period_id=period.id)
                result = RecordResult.ERROR

            report.record(period.id, result)

        log.info("Sweep finished", **report.to_dict())
        return report

    def process_period(
        self,
        spec: SweepSpec,
        period: Period,
        reference: datetime
    ) -> RecordResult:
        """Attempt the action pair for one period and commit the decision."""
        log = self.logger.bind(
            task=spec.name,
            period_id=period.id,
            account_id=period.account_id
        )

        if period.status != spec.source_status or not period.is_due(spec.due_kind, reference):
            log.warning("Skipping period that is not due", status=period.status.value)
            return RecordResult.UNCHANGED

        log.info("Processing period", reason=period.reason)

        outcomes = self.perform_actions(spec, period)
        for outcome in outcomes:
            if not outcome.succeeded:
                self._log_failed_outcome(log, outcome)

        next_status = decide(period.status, spec.due_kind, outcomes)
        if next_status is None:
            log.warning(
                "Could not complete all actions, keeping status",
                status=period.status.value,
                failed=[o.action.value for o in outcomes if not o.succeeded]
            )
            return RecordResult.UNCHANGED

        try:
            self.store.update_status(period.id, period.status, next_status)
        except ConflictError as e:
            log.warning(
                "Status changed concurrently, reconsidering next tick",
                expected_status=e.expected_status,
                actual_status=e.actual_status
            )
            return RecordResult.CONFLICT

        log_state_transition(
            state_logger,
            period_id=period.id,
            from_status=period.status.value,
            to_status=next_status.value,
            trigger=spec.due_kind.value,
            context={"account_id": period.account_id, "task": spec.name}
        )
        return RecordResult.ADVANCED

    def perform_actions(self, spec: SweepSpec, period: Period) -> list[ActionOutcome]:
        """Run the marker action and the notification, collecting both outcomes."""
        if spec.marker_action == ActionName.APPLY_MARKER:
            marker_call = self.adapter.apply_marker
        elif spec.marker_action == ActionName.CLEAR_MARKER:
            marker_call = self.adapter.clear_marker
        else:
            raise LifecycleLogicError(
                f"Unsupported marker action: {spec.marker_action}",
                current_status=period.status.value,
                due_kind=spec.due_kind.value
            )

        message = self.render_message(spec, period)
        return [
            self.adapter.attempt(spec.marker_action, lambda: marker_call(period.account_id)),
            self.adapter.attempt(
                ActionName.NOTIFY,
                lambda: self.adapter.notify(
                    period.account_id,
                    message,
                    idempotency_key=f"{period.id}:{spec.due_kind.value}"
                )
            ),
        ]

    def render_message(self, spec: SweepSpec, period: Period) -> str:
        return spec.message_template.format(
            reason=period.reason,
            end_time=format_local(
                period.end_time, self.time_params.display_format, self.time_params.timezone
            ),
        )

    def _log_failed_outcome(self, log, outcome: ActionOutcome) -> None:
        error = outcome.error
        if isinstance(error, PermissionDeniedError):
            log.error("Action not permitted, operator intervention required",
                      action=outcome.action.value, error=str(error))
        elif isinstance(error, NotFoundError):
            log.warning("Action target not reachable",
                        action=outcome.action.value, error=str(error))
        else:
            log.warning("Action failed, will retry next tick",
                        action=outcome.action.value, error=str(error))
