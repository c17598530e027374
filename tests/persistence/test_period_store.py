"""Tests for period persistence layer."""

import os
import shutil
import sqlite3
import tempfile
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from leave_app.errors import ConflictError, PersistenceError, ValidationError
from leave_app.persistence.period_store import PeriodStore
from leave_app.state.models import DueKind, PeriodStatus


class TestPeriodStoreSchema:

    def test_init_database(self, store):
        assert Path(store.db_path).exists()

        with store._get_connection() as conn:
            tables = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )]
            indexes = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index'"
            )]

        assert "periods" in tables
        assert "idx_periods_status_start" in indexes
        assert "idx_periods_status_end" in indexes

    def test_reopen_existing_database(self, store, period_factory):
        stored = store.insert(period_factory())

        reopened = PeriodStore(store.db_path)

        assert reopened.get_period(stored.id) == stored

    def test_status_column_is_constrained(self, store, period_factory):
        stored = store.insert(period_factory())

        with pytest.raises(PersistenceError):
            with store._get_connection() as conn:
                conn.execute("UPDATE periods SET status = 'failed' WHERE id = ?", (stored.id,))
                conn.commit()


class TestInsert:

    def test_insert_assigns_id_and_pending(self, store, period_factory):
        new_period = period_factory()

        stored = store.insert(new_period)

        assert stored.id
        assert stored.status == PeriodStatus.PENDING
        assert stored.account_id == "A"
        assert stored.start_time == new_period.start_time
        assert stored.end_time == new_period.end_time

    def test_ids_are_unique(self, store, period_factory):
        ids = {store.insert(period_factory()).id for _ in range(5)}
        assert len(ids) == 5

    def test_round_trips_instants_as_utc(self, store, period_factory):
        stored = store.insert(period_factory())
        loaded = store.get_period(stored.id)

        assert loaded.start_time == stored.start_time
        assert loaded.start_time.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("start,end", [
        (timedelta(hours=1), timedelta(hours=1)),
        (timedelta(hours=2), timedelta(hours=1)),
    ])
    def test_non_positive_duration_rejected_and_not_persisted(self, store, period_factory, start, end):
        with pytest.raises(ValidationError):
            store.insert(period_factory(start_offset=start, end_offset=end))

        assert store.get_stats()["total_periods"] == 0


class TestQueryDue:

    def test_pending_due_on_start(self, store, period_factory, now):
        due = store.insert(period_factory("A", start_offset=timedelta(minutes=-1)))
        store.insert(period_factory("B", start_offset=timedelta(hours=1),
                                    end_offset=timedelta(hours=2)))

        result = store.query_due(PeriodStatus.PENDING, now, "start_time")

        assert [p.id for p in result] == [due.id]

    def test_boundary_equal_to_reference_is_not_due(self, store, period_factory, now):
        store.insert(period_factory(start_offset=timedelta(0)))

        assert store.query_due(PeriodStatus.PENDING, now, "start_time") == []
        assert len(store.query_due(PeriodStatus.PENDING, now + timedelta(seconds=1),
                                   "start_time")) == 1

    def test_status_must_match(self, store, period_factory, now):
        store.insert(period_factory(end_offset=timedelta(minutes=-1),
                                    start_offset=timedelta(hours=-1)))

        assert store.query_due(PeriodStatus.ACTIVE, now, "end_time") == []
        assert len(store.query_due(PeriodStatus.PENDING, now, "end_time")) == 1

    def test_insertion_order_and_limit(self, store, period_factory, now):
        ids = [store.insert(period_factory(account)).id for account in ("C", "A", "B")]

        assert [p.id for p in store.query_due(PeriodStatus.PENDING, now, "start_time")] == ids
        assert [p.id for p in store.query_due(PeriodStatus.PENDING, now, "start_time",
                                              limit=2)] == ids[:2]

    def test_query_due_for_due_kind(self, store, period_factory, now):
        stored = store.insert(period_factory())

        result = store.query_due_for(PeriodStatus.PENDING, DueKind.START, now)

        assert [p.id for p in result] == [stored.id]

    def test_unknown_boundary_field_rejected(self, store, now):
        with pytest.raises(ValueError):
            store.query_due(PeriodStatus.PENDING, now, "reason; DROP TABLE periods")

    def test_database_error_raises_persistence_error(self, store, now):
        with patch("leave_app.persistence.period_store.sqlite3.connect",
                   side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(PersistenceError):
                store.query_due(PeriodStatus.PENDING, now, "start_time")


class TestUpdateStatus:

    def test_compare_and_swap_succeeds(self, store, period_factory):
        stored = store.insert(period_factory())

        updated = store.update_status(stored.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        assert updated.status == PeriodStatus.ACTIVE
        assert store.get_period(stored.id).status == PeriodStatus.ACTIVE

    def test_stale_expected_status_conflicts(self, store, period_factory):
        stored = store.insert(period_factory())
        store.update_status(stored.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        with pytest.raises(ConflictError) as exc_info:
            store.update_status(stored.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        assert exc_info.value.expected_status == "pending"
        assert exc_info.value.actual_status == "active"
        assert store.get_period(stored.id).status == PeriodStatus.ACTIVE

    def test_missing_period_conflicts(self, store):
        with pytest.raises(ConflictError) as exc_info:
            store.update_status("missing", PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        assert exc_info.value.actual_status is None


class TestReadHelpers:

    def test_list_periods_by_status(self, store, period_factory):
        first = store.insert(period_factory("A"))
        second = store.insert(period_factory("B"))
        store.update_status(second.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        assert [p.id for p in store.list_periods()] == [first.id, second.id]
        assert [p.id for p in store.list_periods(PeriodStatus.ACTIVE)] == [second.id]

    def test_get_missing_period(self, store):
        assert store.get_period("nope") is None

    def test_stats(self, store, period_factory):
        store.insert(period_factory("A"))
        stored = store.insert(period_factory("B"))
        store.update_status(stored.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)

        stats = store.get_stats()

        assert stats["total_periods"] == 2
        assert stats["periods_by_status"] == {"pending": 1, "active": 1, "completed": 0}


class TestStoreFileLocation:
    """Store created on a path outside pytest's tmp_path."""

    def setup_method(self):
        """Setup test database directory."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "nested", "periods.db")

    def teardown_method(self):
        """Cleanup test database."""
        shutil.rmtree(self.temp_dir)

    def test_creates_parent_directory(self):
        store = PeriodStore(self.db_path)

        assert os.path.exists(self.db_path)
        assert store.get_stats()["total_periods"] == 0

    def test_unwritable_location_raises_persistence_error(self):
        blocker = os.path.join(self.temp_dir, "file")
        with open(blocker, "w") as f:
            f.write("not a directory")

        with pytest.raises((PersistenceError, OSError)):
            PeriodStore(os.path.join(blocker, "periods.db"))


class TestCopyTo:

    def test_copy_is_independent(self, store, period_factory, tmp_path):
        period = store.insert(period_factory())

        copy = store.copy_to(tmp_path / "copy.db")
        copy.update_status(period.id, PeriodStatus.PENDING, PeriodStatus.ACTIVE)
        copy.insert(period_factory("B"))

        assert copy.get_period(period.id).status == PeriodStatus.ACTIVE
        assert store.get_period(period.id).status == PeriodStatus.PENDING
        assert store.get_stats()["total_periods"] == 1

    def test_copy_keeps_due_queries_working(self, store, period_factory, tmp_path, now):
        period = store.insert(period_factory())

        copy = store.copy_to(tmp_path / "copy.db")

        assert [p.id for p in copy.query_due_for(PeriodStatus.PENDING, DueKind.START, now)] == \
            [period.id]
