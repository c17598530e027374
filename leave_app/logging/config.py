"""
Structured logging for the leave app.

Three kinds of events come out of a running process: per-record sweep events
(``task``, ``period_id``, ``account_id``), adapter call events (``action``,
``status_code``, ``discord_code``) and one ``state_transition`` audit event per
committed status change. All of them go through structlog so they can be
rendered for a terminal or as one JSON object per line.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from structlog.types import FilteringBoundLogger


def _base_processors(include_timestamp: bool, include_caller: bool) -> list:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))
    return processors


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure structlog once at process start.

    Args:
        level: Minimum level; DEBUG also shows empty sweeps and skipped
            notifications
        format_json: One JSON object per line instead of console rendering
        include_timestamp: Add an ISO timestamp to every event
        include_caller: Add filename and line number
        extra_processors: Processors inserted before the renderer
        stream: Where log lines go; the CLI passes stderr so that command
            output on stdout stays machine-readable
    """
    stream = stream or sys.stdout

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        stream=stream,
        format="%(message)s"
    )

    processors = _base_processors(include_timestamp, include_caller)
    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Logger for a module, usually called with ``__name__``."""
    return structlog.get_logger(name)


def get_scheduler_logger(name: str) -> FilteringBoundLogger:
    """Logger for sweep and periodic-task events."""
    return get_logger(name).bind(subsystem="scheduler")


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Logger for the lifecycle audit trail.

    Events from it carry ``audit_trail=True`` so committed transitions can
    be filtered out of the general log stream.
    """
    return get_logger(name).bind(
        subsystem="lifecycle",
        audit_trail=True
    )


def log_state_transition(
    logger: FilteringBoundLogger,
    period_id: str,
    from_status: str,
    to_status: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Record one committed status change of a leave period.

    Called only after the compare-and-swap update succeeded, so every
    ``state_transition`` event matches a row change in the store.

    Args:
        logger: Usually the logger from ``get_state_logger``
        period_id: Period whose status changed
        from_status: ``pending`` or ``active``
        to_status: ``active`` or ``completed``
        trigger: Due kind that caused it (``start`` or ``end``)
        context: Extra fields such as ``account_id`` and ``task``
    """
    bound_logger = logger.bind(
        period_id=period_id,
        from_status=from_status,
        to_status=to_status,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("state_transition")
