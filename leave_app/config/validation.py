"""Configuration validation utilities."""

import string
from dataclasses import dataclass
from typing import Any

from ..utils.time import get_zone

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
TEMPLATE_FIELDS = {"reason", "end_time"}


@dataclass(frozen=True)
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_snowflake(value: Any) -> bool:
    return str(value).isdigit() and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_scheduler_params(params: dict[str, Any]) -> list[ConfigValidationError]:
        """Validate scheduler parameters."""
        errors = []

        for name in ("sweep_interval_seconds", "drain_timeout_seconds"):
            if name in params and not _is_positive_number(params[name]):
                errors.append(ConfigValidationError(
                    field=f"scheduler.{name}",
                    message="Must be a positive number",
                    value=params[name]
                ))

        if "batch_size" in params:
            value = params["batch_size"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ConfigValidationError(
                    field="scheduler.batch_size",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_directory_params(
        params: dict[str, Any],
        require_ids: bool = True
    ) -> list[ConfigValidationError]:
        """Validate directory-service parameters."""
        errors = []

        for name in ("guild_id", "marker_role_id"):
            value = params.get(name, "")
            if value in ("", None):
                if require_ids:
                    errors.append(ConfigValidationError(
                        field=f"directory.{name}",
                        message="Is required",
                        value=value
                    ))
            elif not _is_snowflake(value):
                errors.append(ConfigValidationError(
                    field=f"directory.{name}",
                    message="Must be a numeric Discord ID",
                    value=value
                ))

        if "timeout_seconds" in params and not _is_positive_number(params["timeout_seconds"]):
            errors.append(ConfigValidationError(
                field="directory.timeout_seconds",
                message="Must be a positive number",
                value=params["timeout_seconds"]
            ))

        return errors

    @staticmethod
    def validate_time_params(params: dict[str, Any]) -> list[ConfigValidationError]:
        """Validate timezone parameters."""
        errors = []

        if "timezone" in params:
            try:
                get_zone(str(params["timezone"]))
            except ValueError:
                errors.append(ConfigValidationError(
                    field="time.timezone",
                    message="Must be a known IANA timezone",
                    value=params["timezone"]
                ))

        return errors

    @staticmethod
    def validate_message_params(params: dict[str, Any]) -> list[ConfigValidationError]:
        """Validate notification templates."""
        errors = []

        for name in ("start_template", "end_template"):
            if name not in params:
                continue
            value = params[name]
            if not isinstance(value, str) or not value.strip():
                errors.append(ConfigValidationError(
                    field=f"messages.{name}",
                    message="Must be a non-empty string",
                    value=value
                ))
                continue
            try:
                used = {f for _, f, _, _ in string.Formatter().parse(value) if f}
            except ValueError:
                used = None
            if used is None or not used <= TEMPLATE_FIELDS:
                errors.append(ConfigValidationError(
                    field=f"messages.{name}",
                    message=f"May only use placeholders {sorted(TEMPLATE_FIELDS)}",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_logging_params(params: dict[str, Any]) -> list[ConfigValidationError]:
        """Validate logging parameters."""
        errors = []

        if "level" in params and str(params["level"]).upper() not in LOG_LEVELS:
            errors.append(ConfigValidationError(
                field="logging.level",
                message=f"Must be one of {', '.join(LOG_LEVELS)}",
                value=params["level"]
            ))

        return errors

    @staticmethod
    def validate_config(
        config: dict[str, Any],
        require_directory: bool = True
    ) -> list[ConfigValidationError]:
        """Validate complete configuration."""
        errors = []

        if "scheduler" in config:
            errors.extend(ConfigValidator.validate_scheduler_params(config["scheduler"]))

        errors.extend(ConfigValidator.validate_directory_params(
            config.get("directory", {}), require_ids=require_directory
        ))

        if "time" in config:
            errors.extend(ConfigValidator.validate_time_params(config["time"]))

        if "messages" in config:
            errors.extend(ConfigValidator.validate_message_params(config["messages"]))

        if "logging" in config:
            errors.extend(ConfigValidator.validate_logging_params(config["logging"]))

        return errors
