"""Tests for lifecycle and period models."""

from datetime import timedelta

import pytest

from leave_app.errors import TransientError, PermissionDeniedError, ValidationError
from leave_app.models.period import Period
from leave_app.state.models import ActionName, ActionOutcome, DueKind, PeriodStatus


class TestEnums:

    def test_status_values_match_stored_text(self):
        assert [s.value for s in PeriodStatus] == ["pending", "active", "completed"]
        assert PeriodStatus("active") is PeriodStatus.ACTIVE

    def test_only_completed_is_terminal(self):
        assert PeriodStatus.COMPLETED.is_terminal
        assert not PeriodStatus.PENDING.is_terminal
        assert not PeriodStatus.ACTIVE.is_terminal

    def test_due_kind_boundary_field(self):
        assert DueKind.START.boundary_field == "start_time"
        assert DueKind.END.boundary_field == "end_time"


class TestActionOutcome:

    def test_success(self):
        outcome = ActionOutcome.success(ActionName.NOTIFY)
        assert outcome.succeeded
        assert outcome.error is None
        assert outcome.recoverable

    def test_transient_failure_is_recoverable(self):
        outcome = ActionOutcome.failure(ActionName.APPLY_MARKER, TransientError("timeout"))
        assert not outcome.succeeded
        assert outcome.recoverable

    def test_permission_failure_is_not_recoverable(self):
        outcome = ActionOutcome.failure(ActionName.APPLY_MARKER, PermissionDeniedError("rank"))
        assert not outcome.recoverable


class TestNewPeriod:

    def test_valid_period_passes(self, period_factory):
        period_factory().validate()

    def test_end_equal_to_start_rejected(self, period_factory):
        period = period_factory(start_offset=timedelta(0), end_offset=timedelta(0))

        with pytest.raises(ValidationError) as exc_info:
            period.validate()
        assert exc_info.value.field == "end_time"

    def test_end_before_start_rejected(self, period_factory):
        with pytest.raises(ValidationError):
            period_factory(start_offset=timedelta(hours=1), end_offset=timedelta(0)).validate()

    def test_naive_datetime_rejected(self, period_factory):
        period = period_factory()
        naive = type(period)(
            account_id="A",
            reason="x",
            start_time=period.start_time.replace(tzinfo=None),
            end_time=period.end_time,
        )
        with pytest.raises(ValidationError) as exc_info:
            naive.validate()
        assert exc_info.value.field == "start_time"

    def test_blank_account_rejected(self, period_factory):
        with pytest.raises(ValidationError):
            period_factory(account_id="  ").validate()


class TestPeriod:

    def test_due_is_strictly_before_reference(self, now):
        period = Period(
            id="p1", account_id="A", reason="r",
            start_time=now, end_time=now + timedelta(hours=1),
        )

        assert not period.is_due(DueKind.START, now)
        assert period.is_due(DueKind.START, now + timedelta(microseconds=1))
        assert not period.is_due(DueKind.END, now + timedelta(hours=1))

    def test_with_status_keeps_identity(self, now):
        period = Period(
            id="p1", account_id="A", reason="r",
            start_time=now, end_time=now + timedelta(hours=1),
        )
        active = period.with_status(PeriodStatus.ACTIVE)

        assert active.status == PeriodStatus.ACTIVE
        assert active.id == period.id
        assert period.status == PeriodStatus.PENDING
