"""
Leave App - Scheduled Leave Period Automation

Manages time-bounded leave periods for directory-service accounts. A period
is scheduled with a start and end instant; at those instants the scheduler
grants or revokes the "on leave" marker role and notifies the account, and
only then advances the period's persisted status.
"""

__version__ = "0.1.0"
__author__ = "Leave App Team"
