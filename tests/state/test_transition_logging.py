"""Tests for the lifecycle audit log helpers."""

from unittest.mock import Mock

from leave_app.logging.config import get_state_logger, log_state_transition


class TestLogStateTransition:

    def test_emits_one_transition_event(self):
        logger = Mock()

        log_state_transition(logger, period_id="p1", from_status="pending",
                             to_status="active", trigger="start",
                             context={"account_id": "A", "task": "start-sweep"})

        logger.bind.assert_called_once_with(period_id="p1", from_status="pending",
                                            to_status="active", trigger="start")
        bound = logger.bind.return_value
        bound.bind.assert_called_once_with(context={"account_id": "A", "task": "start-sweep"})
        bound.bind.return_value.info.assert_called_once_with("state_transition")

    def test_without_context(self):
        logger = Mock()

        log_state_transition(logger, "p1", "active", "completed", "end")

        logger.bind.return_value.bind.assert_not_called()
        logger.bind.return_value.info.assert_called_once_with("state_transition")

    def test_state_logger_is_usable(self):
        log_state_transition(get_state_logger(__name__), "p1", "pending", "active", "start")
