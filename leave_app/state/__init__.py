"""
Lifecycle state machine module.

Decides status changes for leave periods:
PENDING → ACTIVE → COMPLETED, each gated on both required actions succeeding.
"""
