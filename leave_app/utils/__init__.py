"""
Utility functions module.

Time Semantics:
- Period boundaries are stored as absolute UTC instants
- Wall-clock input is interpreted in the configured reference timezone
- Human-facing output (notifications, CLI) is rendered in that timezone
"""
