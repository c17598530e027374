"""
Periodic task runner.

Each task runs on its own thread and fires at a fixed rate. A task never
runs two sweeps at once: ticks that come due while a sweep is still running
are dropped, not queued. Shutdown sets a shared stop event; in-flight sweeps
finish the record they are working on and then return. A record is never cut
short: task threads are not daemons, and ``join`` waits without a deadline.
"""

import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional

from ..logging.config import get_scheduler_logger
from .sweep import LifecycleSweeper, SweepReport, SweepSpec

logger = get_scheduler_logger(__name__)


class PeriodicTask:
    """A fixed-rate loop with at most one in-flight run."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[threading.Event], Any],
        stop_event: Optional[threading.Event] = None,
        run_immediately: bool = True
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self.stop_event = stop_event or threading.Event()
        self.run_immediately = run_immediately
        self.logger = logger.bind(task=name)

        self._running = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._tick_count = 0
        self._dropped_ticks = 0
        self._last_result: Any = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def in_flight(self) -> bool:
        return self._running.locked()

    def start(self) -> None:
        if self.is_alive:
            return
        # Non-daemon: interpreter exit waits for the record in flight
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=False)
        self._thread.start()
        self.logger.info("Periodic task started", interval_seconds=self.interval_seconds)

    def tick(self, func: Optional[Callable[[threading.Event], Any]] = None) -> bool:
        """
        Run the task once unless a run is already in flight.

        Args:
            func: Run this instead of the task's own function, under the
                same exclusion (manual sweeps)

        Returns:
            True if the run happened, False if the tick was dropped
        """
        if not self._running.acquire(blocking=False):
            self._dropped_ticks += 1
            self.logger.warning("Previous sweep still running, dropping tick")
            return False

        try:
            self._tick_count += 1
            self._last_result = (func or self.func)(self.stop_event)
        except Exception:
            # The loop must survive anything a single run raises
            self.logger.exception("Periodic task run failed")
        finally:
            self._running.release()
        return True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to exit; True if it did."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        next_tick = time.monotonic() + (0.0 if self.run_immediately else self.interval_seconds)

        while not self.stop_event.is_set():
            delay = next_tick - time.monotonic()
            if delay > 0 and self.stop_event.wait(delay):
                break

            self.tick()

            next_tick += self.interval_seconds
            now = time.monotonic()
            if now >= next_tick:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                self._dropped_ticks += missed
                next_tick += missed * self.interval_seconds
                self.logger.warning("Sweep overran its interval, dropped ticks", dropped=missed)

        self.logger.info("Periodic task stopped")

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "alive": self.is_alive,
            "in_flight": self.in_flight,
            "tick_count": self._tick_count,
            "dropped_ticks": self._dropped_ticks,
        }


class LifecycleScheduler:
    """
    Owns the start-sweep and end-sweep tasks.

    Collaborators are injected: the sweeper carries the store and the action
    adapter, which must be initialized before ``start`` is called.
    """

    def __init__(
        self,
        sweeper: LifecycleSweeper,
        specs: tuple[SweepSpec, ...],
        interval_seconds: float = 60.0,
        run_immediately: bool = True
    ):
        self.sweeper = sweeper
        self.specs = specs
        self.interval_seconds = interval_seconds
        self.stop_event = threading.Event()
        self.logger = logger
        self.last_reports: dict[str, SweepReport] = {}

        self.tasks = [
            PeriodicTask(
                name=spec.name,
                interval_seconds=interval_seconds,
                func=self._sweep_func(spec),
                stop_event=self.stop_event,
                run_immediately=run_immediately,
            )
            for spec in specs
        ]

    def _sweep_func(self, spec: SweepSpec) -> Callable[[threading.Event], SweepReport]:
        def run(stop_event: threading.Event) -> SweepReport:
            report = self.sweeper.run_sweep(spec, stop_event=stop_event)
            self.last_reports[spec.name] = report
            return report
        return run

    @property
    def is_running(self) -> bool:
        return any(task.is_alive for task in self.tasks)

    def start(self) -> None:
        """Start both periodic tasks."""
        self.stop_event.clear()
        for task in self.tasks:
            task.start()
        self.logger.info("Scheduler started", tasks=[t.name for t in self.tasks])

    def stop(self, drain: bool = True, timeout: Optional[float] = 30.0) -> bool:
        """
        Stop the tasks.

        Args:
            drain: Wait for in-flight sweeps to finish their current record
            timeout: Maximum seconds to wait per task

        Returns:
            True if every task thread has exited
        """
        self.stop_event.set()
        if not drain:
            return not self.is_running

        stopped = self.join(timeout)
        if stopped:
            self.logger.info("Scheduler stopped")
        else:
            self.logger.warning("Scheduler did not drain in time",
                                in_flight=[t.name for t in self.tasks if t.in_flight])
        return stopped

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every task thread to exit.

        With ``timeout=None`` this returns only once the in-flight records
        have finished; the stop event keeps that to one record per task.
        """
        return all([task.join(timeout) for task in self.tasks])

    def sweep(self, name: str, now: Optional[datetime] = None) -> Optional[SweepReport]:
        """
        Run one sweep of the named task synchronously.

        Overlap protection still applies: if the task is already sweeping
        this call is dropped and returns None.
        """
        task = self._task(name)
        spec = self._spec(name)
        result: list[SweepReport] = []

        def run(stop_event: threading.Event) -> SweepReport:
            report = self.sweeper.run_sweep(spec, now=now, stop_event=stop_event)
            self.last_reports[spec.name] = report
            result.append(report)
            return report

        task.tick(run)
        return result[0] if result else None

    def run_once(self, now: Optional[datetime] = None) -> list[SweepReport]:
        """Run every task once, in order, outside the timer threads."""
        reports = []
        for spec in self.specs:
            report = self.sweep(spec.name, now)
            if report is not None:
                reports.append(report)
        return reports

    def _task(self, name: str) -> PeriodicTask:
        for task in self.tasks:
            if task.name == name:
                return task
        raise KeyError(f"Unknown task: {name}")

    def _spec(self, name: str) -> SweepSpec:
        for spec in self.specs:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown task: {name}")

    def get_stats(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "tasks": [task.get_stats() for task in self.tasks],
            "last_reports": {name: r.to_dict() for name, r in self.last_reports.items()},
        }
