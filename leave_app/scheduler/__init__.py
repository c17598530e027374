"""
Periodic lifecycle scheduler.

Two independent tasks, start-sweep and end-sweep, each periodically query the
store for due periods in one status, run the required actions and commit the
state machine's decision.
"""
from .runner import LifecycleScheduler, PeriodicTask
from .sweep import LifecycleSweeper, SweepReport, SweepSpec, default_sweep_specs

__all__ = [
    "LifecycleScheduler",
    "LifecycleSweeper",
    "PeriodicTask",
    "SweepReport",
    "SweepSpec",
    "default_sweep_specs",
]
