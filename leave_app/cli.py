"""Command-line entry point for the leave app."""

import argparse
import json
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import structlog

from .config.loader import ConfigLoader
from .engine import LeaveEngine
from .errors import StartupError, ValidationError
from .logging.config import configure_logging
from .state.models import PeriodStatus
from .utils.time import format_local

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leave-app",
        description="Schedule leave periods and apply the on-leave role on time."
    )
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("--dry-run", action="store_true",
                        help="Use an in-memory directory and a scratch copy of the store")
    parser.add_argument("--log-level", help="Override logging level")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run both periodic sweeps until interrupted")
    sub.add_parser("sweep", help="Run one start-sweep and one end-sweep, then exit")

    schedule = sub.add_parser("schedule", help="Schedule a new leave period")
    schedule.add_argument("--account", required=True, help="Discord user ID")
    schedule.add_argument("--reason", required=True)
    schedule.add_argument("--start", required=True, help="YYYY/MM/DD HH:mm")
    schedule.add_argument("--end", required=True, help="YYYY/MM/DD HH:mm")

    list_cmd = sub.add_parser("list", help="List stored periods")
    list_cmd.add_argument("--status", choices=[s.value for s in PeriodStatus])
    list_cmd.add_argument("--limit", type=int, default=100)

    sub.add_parser("stats", help="Show period counts by status")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    overrides: dict = {}
    if args.log_level:
        overrides.setdefault("logging", {})["level"] = args.log_level
    if args.json_logs:
        overrides.setdefault("logging", {})["format_json"] = True
    return overrides


def run_forever(engine: LeaveEngine) -> None:
    """Run the scheduler until SIGINT or SIGTERM, then drain."""
    shutdown = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Shutdown requested", signal=signal.Signals(signum).name)
        shutdown.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    engine.start()
    while not shutdown.wait(1.0):
        pass

    if not engine.stop(drain=True):
        logger.warning("Drain timeout passed, waiting for in-flight records to finish")
        engine.scheduler.join()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    loader = ConfigLoader.create(args.config)
    overrides = _overrides(args)
    log_config = loader.build(overrides).logging
    # stdout carries command output
    configure_logging(level=log_config.level, format_json=log_config.format_json,
                      stream=sys.stderr)

    engine = None
    try:
        engine = LeaveEngine.from_environment(loader, overrides, dry_run=args.dry_run)

        if args.command == "run":
            run_forever(engine)

        elif args.command == "sweep":
            engine.initialize()
            for report in engine.run_once():
                print(json.dumps(report.to_dict()))

        elif args.command == "schedule":
            period = engine.schedule_period({
                "discordUserId": args.account,
                "reason": args.reason,
                "startDate": args.start,
                "endDate": args.end,
            })
            print(json.dumps({"message": "Holiday scheduled successfully!", "id": period.id}))

        elif args.command == "list":
            status = PeriodStatus(args.status) if args.status else None
            time_cfg = engine.config.time
            for period in engine.store.list_periods(status=status, limit=args.limit):
                print(json.dumps({
                    "id": period.id,
                    "account_id": period.account_id,
                    "reason": period.reason,
                    "start": format_local(period.start_time, time_cfg.display_format, time_cfg.timezone),
                    "end": format_local(period.end_time, time_cfg.display_format, time_cfg.timezone),
                    "status": period.status.value,
                }, ensure_ascii=False))

        elif args.command == "stats":
            print(json.dumps(engine.store.get_stats()))

    except ValidationError as e:
        logger.error("Invalid period request", field=e.field, error=str(e))
        return 2
    except StartupError as e:
        logger.critical("Startup failed", component=e.component, error=str(e))
        return 1
    finally:
        if engine is not None:
            engine.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
