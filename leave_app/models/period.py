"""Leave period records."""

from dataclasses import dataclass, replace
from datetime import datetime

from ..errors import ValidationError
from ..state.models import DueKind, PeriodStatus


@dataclass(frozen=True)
class NewPeriod:
    """A period as submitted by intake, before it has an id."""
    account_id: str
    reason: str
    start_time: datetime
    end_time: datetime

    def validate(self) -> None:
        """
        Check creation invariants.

        Raises:
            ValidationError: on a missing account, naive instants or a
                non-positive duration
        """
        if not self.account_id or not str(self.account_id).strip():
            raise ValidationError("account_id is required", field="account_id",
                                  value=self.account_id)
        for name in ("start_time", "end_time"):
            value = getattr(self, name)
            if not isinstance(value, datetime) or value.tzinfo is None:
                raise ValidationError(f"{name} must be a timezone-aware datetime",
                                      field=name, value=value)
        if self.end_time <= self.start_time:
            raise ValidationError(
                "end_time must be after start_time",
                field="end_time",
                value=self.end_time,
                context={"start_time": self.start_time.isoformat(),
                         "end_time": self.end_time.isoformat()}
            )


@dataclass(frozen=True)
class Period:
    """A stored leave period."""
    id: str
    account_id: str
    reason: str
    start_time: datetime
    end_time: datetime
    status: PeriodStatus = PeriodStatus.PENDING

    def boundary(self, due_kind: DueKind) -> datetime:
        """The instant at which ``due_kind`` becomes due."""
        return getattr(self, due_kind.boundary_field)

    def is_due(self, due_kind: DueKind, reference: datetime) -> bool:
        """Due means strictly before the reference instant."""
        return self.boundary(due_kind) < reference

    def with_status(self, status: PeriodStatus) -> "Period":
        return replace(self, status=status)
