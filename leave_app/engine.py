"""
Main leave app coordinator.

Builds the collaborators explicitly and owns their lifecycle:
Intake → Store (insert) → Scheduler tick → Store (query due) →
Actions → State machine → Store (status update).
"""

import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from .actions.base import BaseActionAdapter
from .actions.discord_adapter import DiscordActionAdapter
from .actions.memory_adapter import InMemoryActionAdapter
from .config.defaults import LeaveAppConfig
from .config.loader import ConfigLoader, config_from_dict
from .config.validation import ConfigValidator
from .errors import StartupError
from .intake.normalizer import PeriodRequestNormalizer
from .models.period import NewPeriod, Period
from .persistence.period_store import PeriodStore
from .scheduler.runner import LifecycleScheduler
from .scheduler.sweep import LifecycleSweeper, SweepReport, default_sweep_specs

logger = structlog.get_logger(__name__)


def create_adapter(
    config: LeaveAppConfig,
    token: Optional[str],
    dry_run: bool = False
) -> BaseActionAdapter:
    """
    Build the action adapter for the configured directory service.

    Raises:
        StartupError: if the token or guild / role ids are missing
    """
    if dry_run:
        return InMemoryActionAdapter(allow_unknown_members=True)

    directory = config.directory
    if not token:
        raise StartupError(
            f"Environment variable {directory.token_env} is not set",
            component="discord"
        )
    if not directory.guild_id or not directory.marker_role_id:
        raise StartupError(
            "directory.guild_id and directory.marker_role_id must be configured",
            component="discord"
        )

    return DiscordActionAdapter(
        token=token,
        guild_id=str(directory.guild_id),
        marker_role_id=str(directory.marker_role_id),
        api_base_url=directory.api_base_url,
        timeout_seconds=directory.timeout_seconds,
    )


def create_scratch_store(db_path: str) -> PeriodStore:
    """
    Open a throwaway copy of the configured store for dry runs.

    The copy lives in a new temporary directory; status changes made by a dry
    run never reach ``db_path``.
    """
    scratch_dir = Path(tempfile.mkdtemp(prefix="leave-dry-run-"))
    scratch_path = scratch_dir / "periods.db"

    source = Path(db_path)
    if source.exists():
        return PeriodStore(source).copy_to(scratch_path)
    return PeriodStore(scratch_path)


class LeaveEngine:
    """
    Coordinator for the leave period lifecycle.

    Every long-lived collaborator (store, adapter, scheduler) is constructed
    here or injected, never looked up globally. ``initialize`` must run
    before ``start``; ``stop`` drains in-flight sweeps.
    """

    def __init__(
        self,
        config: LeaveAppConfig,
        adapter: BaseActionAdapter,
        store: Optional[PeriodStore] = None,
        run_immediately: bool = True,
        scratch: bool = False
    ) -> None:
        self.config = config
        self.logger = logger

        self.store = store or PeriodStore(config.store.db_path)
        self.adapter = adapter
        self.scratch = scratch
        self.normalizer = PeriodRequestNormalizer(
            timezone=config.time.timezone,
            date_format=config.time.input_format,
        )
        self.sweeper = LifecycleSweeper(
            store=self.store,
            adapter=self.adapter,
            time_params=config.time,
            batch_size=config.scheduler.batch_size,
        )
        self.specs = default_sweep_specs(config.messages)
        self.scheduler = LifecycleScheduler(
            sweeper=self.sweeper,
            specs=self.specs,
            interval_seconds=config.scheduler.sweep_interval_seconds,
            run_immediately=run_immediately,
        )
        self._initialized = False

        self.logger.info(
            "Leave engine created",
            db_path=str(self.store.db_path),
            adapter=self.adapter.name,
            timezone=config.time.timezone
        )

    @classmethod
    def from_environment(
        cls,
        loader: Optional[ConfigLoader] = None,
        overrides: Optional[dict[str, Any]] = None,
        dry_run: bool = False
    ) -> "LeaveEngine":
        """
        Load and validate configuration, then build the engine.

        Raises:
            StartupError: on invalid configuration or missing credentials
        """
        loader = loader or ConfigLoader.create()
        merged = loader.merge_config(overrides)

        errors = ConfigValidator.validate_config(merged, require_directory=not dry_run)
        if errors:
            error_msgs = [f"{err.field}: {err.message} (got: {err.value!r})" for err in errors]
            raise StartupError(
                "Configuration validation failed: " + "; ".join(error_msgs),
                component="config",
                context={"errors": error_msgs}
            )

        config = config_from_dict(merged)
        adapter = create_adapter(config, loader.get_token(config), dry_run=dry_run)
        if not dry_run:
            return cls(config, adapter=adapter)

        store = create_scratch_store(config.store.db_path)
        logger.warning(
            "Dry run: using an in-memory directory and a scratch copy of the store",
            db_path=config.store.db_path,
            scratch_path=str(store.db_path)
        )
        return cls(config, adapter=adapter, store=store, scratch=True)

    def initialize(self) -> None:
        """
        Bootstrap the directory-service session.

        Raises:
            StartupError: if authentication fails
        """
        if isinstance(self.adapter, DiscordActionAdapter):
            self.adapter.verify_connection()
        self._initialized = True

    def schedule_period(self, request: Any) -> Period:
        """
        Validate and store a new period.

        Args:
            request: Raw request dict (intake format) or a ``NewPeriod``

        Raises:
            ValidationError: for malformed input or a non-positive duration
        """
        period = request if isinstance(request, NewPeriod) else self.normalizer.normalize(request)
        stored = self.store.insert(period)

        self.logger.info(
            "Holiday scheduled",
            period_id=stored.id,
            account_id=stored.account_id
        )
        return stored

    def run_start_sweep(self, now: Optional[datetime] = None) -> Optional[SweepReport]:
        return self.scheduler.sweep("start-sweep", now)

    def run_end_sweep(self, now: Optional[datetime] = None) -> Optional[SweepReport]:
        return self.scheduler.sweep("end-sweep", now)

    def run_once(self, now: Optional[datetime] = None) -> list[SweepReport]:
        return self.scheduler.run_once(now)

    def start(self) -> None:
        """Start the periodic sweeps."""
        if not self._initialized:
            self.initialize()
        self.scheduler.start()

    def stop(self, drain: bool = True) -> bool:
        """Stop the periodic sweeps, waiting for in-flight records to finish."""
        return self.scheduler.stop(
            drain=drain,
            timeout=self.config.scheduler.drain_timeout_seconds
        )

    def close(self) -> None:
        """Discard the scratch store of a dry run."""
        if self.scratch:
            shutil.rmtree(self.store.db_path.parent, ignore_errors=True)

    def stats(self) -> dict[str, Any]:
        return {
            "store": self.store.get_stats(),
            "actions": self.adapter.get_stats(),
            "scheduler": self.scheduler.get_stats(),
        }
