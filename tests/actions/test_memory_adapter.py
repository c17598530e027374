"""Tests for the in-memory action adapter and the shared idempotency logic."""

import pytest

from leave_app.actions.memory_adapter import InMemoryActionAdapter
from leave_app.errors import NotFoundError, PermissionDeniedError, TransientError
from leave_app.state.models import ActionName


class TestMarkerIdempotency:

    def test_apply_twice_has_single_effect(self, adapter):
        adapter.apply_marker("A")
        adapter.apply_marker("A")

        assert adapter.markers == {"A"}
        assert adapter.calls[ActionName.APPLY_MARKER] == 2
        assert adapter.effects[ActionName.APPLY_MARKER] == 1

    def test_clear_twice_has_single_effect(self, adapter):
        adapter.apply_marker("A")

        adapter.clear_marker("A")
        adapter.clear_marker("A")

        assert adapter.markers == set()
        assert adapter.effects[ActionName.CLEAR_MARKER] == 1

    def test_clear_absent_marker_succeeds(self, adapter):
        adapter.clear_marker("B")

        assert adapter.effects[ActionName.CLEAR_MARKER] == 0

    def test_missing_rank_raises_permission_denied(self):
        adapter = InMemoryActionAdapter(members=["A"], has_rank=False)

        with pytest.raises(PermissionDeniedError):
            adapter.apply_marker("A")
        assert adapter.markers == set()

    def test_already_present_marker_needs_no_rank(self):
        adapter = InMemoryActionAdapter(members=["A"])
        adapter.apply_marker("A")
        adapter.has_rank = False

        adapter.apply_marker("A")

    def test_unknown_member(self, adapter):
        with pytest.raises(NotFoundError):
            adapter.apply_marker("Z")


class TestNotify:

    def test_same_key_delivered_once(self, adapter):
        adapter.notify("A", "hello", idempotency_key="p1:start")
        adapter.notify("A", "hello", idempotency_key="p1:start")

        assert adapter.messages_for("A") == ["hello"]

    def test_default_key_is_account_and_message(self, adapter):
        adapter.notify("A", "hello")
        adapter.notify("A", "hello")
        adapter.notify("A", "bye")

        assert adapter.messages_for("A") == ["hello", "bye"]

    def test_distinct_keys_deliver_same_text(self, adapter):
        adapter.notify("A", "ended", idempotency_key="p1:end")
        adapter.notify("A", "ended", idempotency_key="p2:end")

        assert adapter.messages_for("A") == ["ended", "ended"]

    def test_failed_delivery_is_not_recorded(self, adapter):
        adapter.fail_next(ActionName.NOTIFY, "A", TransientError("timeout"))

        with pytest.raises(TransientError):
            adapter.notify("A", "hello", idempotency_key="k")
        adapter.notify("A", "hello", idempotency_key="k")

        assert adapter.messages_for("A") == ["hello"]

    def test_ledger_is_bounded(self):
        adapter = InMemoryActionAdapter(members=["A"])
        adapter._ledger_size = 2

        for key in ("k1", "k2", "k3"):
            adapter.notify("A", "m", idempotency_key=key)

        assert list(adapter._delivered) == ["k2", "k3"]


class TestFailureInjectionAndAttempt:

    def test_fail_next_times(self, adapter):
        adapter.fail_next(ActionName.APPLY_MARKER, "A", TransientError("503"), times=2)

        for _ in range(2):
            with pytest.raises(TransientError):
                adapter.apply_marker("A")
        adapter.apply_marker("A")

        assert adapter.markers == {"A"}

    def test_attempt_captures_action_errors(self, adapter):
        adapter.fail_next(ActionName.APPLY_MARKER, "A", TransientError("503"))

        failed = adapter.attempt(ActionName.APPLY_MARKER, lambda: adapter.apply_marker("A"))
        succeeded = adapter.attempt(ActionName.APPLY_MARKER, lambda: adapter.apply_marker("A"))

        assert not failed.succeeded
        assert isinstance(failed.error, TransientError)
        assert succeeded.succeeded
        stats = adapter.get_stats()
        assert stats["success_count"] == 1
        assert stats["error_count"] == 1
        assert stats["success_rate"] == 0.5

    def test_attempt_propagates_unexpected_errors(self, adapter):
        def broken():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            adapter.attempt(ActionName.NOTIFY, broken)

    def test_reset_stats(self, adapter):
        adapter.attempt(ActionName.NOTIFY, lambda: adapter.notify("A", "x"))
        adapter.reset_stats()

        assert adapter.get_stats()["success_count"] == 0
