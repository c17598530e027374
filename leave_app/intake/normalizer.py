"""
Request normalization for scheduling leave periods.

Accepts the request shape of the scheduling endpoint (``discordUserId``,
``reason``, ``startDate``, ``endDate``) as well as snake_case field names,
parses the dates as ``YYYY/MM/DD HH:mm`` wall-clock time in the reference
timezone and produces a validated ``NewPeriod``.
"""

from datetime import datetime
from typing import Any, Optional

import structlog

from ..errors import ValidationError
from ..models.period import NewPeriod
from ..utils.time import ensure_utc, parse_local

logger = structlog.get_logger(__name__)

FIELD_ALIASES = {
    "account_id": ("account_id", "discordUserId", "discord_user_id"),
    "reason": ("reason",),
    "start": ("start_time", "startDate", "start_date", "start"),
    "end": ("end_time", "endDate", "end_date", "end"),
}


class PeriodRequestNormalizer:
    """
    Intake validation pipeline.

    Rejects missing fields, malformed dates and non-positive durations with
    ``ValidationError``; nothing invalid is handed on to the store.
    """

    def __init__(self, timezone: str = "Europe/Vilnius", date_format: str = "%Y/%m/%d %H:%M"):
        self.timezone = timezone
        self.date_format = date_format
        self.logger = logger

    def normalize(self, request: dict[str, Any]) -> NewPeriod:
        """
        Normalize a raw scheduling request.

        Args:
            request: Raw request body

        Returns:
            NewPeriod with UTC instants

        Raises:
            ValidationError: on any invalid field
        """
        if not isinstance(request, dict):
            raise ValidationError("Request body must be an object", value=request)

        values = {name: self._pick(request, aliases) for name, aliases in FIELD_ALIASES.items()}

        missing = [name for name, value in values.items()
                   if value is None or (isinstance(value, str) and not value.strip())]
        if missing:
            raise ValidationError(
                "Missing required fields: discordUserId, reason, startDate, endDate",
                field=missing[0],
                context={"missing": missing}
            )

        start_time = self._parse_instant(values["start"], "start_time")
        end_time = self._parse_instant(values["end"], "end_time")

        period = NewPeriod(
            account_id=str(values["account_id"]).strip(),
            reason=str(values["reason"]).strip(),
            start_time=start_time,
            end_time=end_time,
        )
        period.validate()

        self.logger.debug(
            "Normalized period request",
            account_id=period.account_id,
            start_time=period.start_time.isoformat(),
            end_time=period.end_time.isoformat()
        )
        return period

    def _pick(self, request: dict[str, Any], aliases: tuple[str, ...]) -> Optional[Any]:
        for alias in aliases:
            if alias in request:
                return request[alias]
        return None

    def _parse_instant(self, value: Any, field: str) -> datetime:
        if isinstance(value, datetime):
            return ensure_utc(value, self.timezone)

        try:
            return parse_local(str(value), self.date_format, self.timezone)
        except ValueError as e:
            raise ValidationError(
                "Invalid date format. Use YYYY/MM/DD HH:mm.",
                field=field,
                value=value
            ) from e
