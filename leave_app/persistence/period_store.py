"""Period persistence layer backed by SQLite."""

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from ..errors import ConflictError, PersistenceError
from ..models.period import NewPeriod, Period
from ..state.models import DueKind, PeriodStatus
from ..utils.time import ensure_utc, from_storage, to_storage, utc_now

BOUNDARY_FIELDS = ("start_time", "end_time")


class PeriodStore:
    """
    SQLite-based store gateway for period records.

    Typed read/write access only: the store validates creation invariants
    and guards status updates with a compare-and-swap, but makes no
    lifecycle decisions.
    """

    def __init__(self, db_path: Union[str, Path] = "leave_periods.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("period.store")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS periods (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    account_id TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'active', 'completed')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CHECK (end_time > start_time)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_periods_status_start
                ON periods(status, start_time)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_periods_status_end
                ON periods(status, end_time)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_periods_account_id ON periods(account_id)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", db_path=str(self.db_path), error=str(e))
            raise PersistenceError(f"Database error: {e}", operation="connection") from e
        finally:
            if conn:
                conn.close()

    def insert(self, period: NewPeriod) -> Period:
        """
        Store a new period with status ``pending``.

        Args:
            period: Validated period data from intake

        Returns:
            The stored period with its generated id

        Raises:
            ValidationError: if ``end_time <= start_time`` (nothing is stored)
            PersistenceError: on database failure
        """
        period.validate()

        stored = Period(
            id=str(uuid.uuid4()),
            account_id=str(period.account_id).strip(),
            reason=period.reason,
            start_time=ensure_utc(period.start_time),
            end_time=ensure_utc(period.end_time),
            status=PeriodStatus.PENDING,
        )

        with self._lock:
            with self._get_connection() as conn:
                now = to_storage(utc_now())
                conn.execute("""
                    INSERT INTO periods (
                        id, account_id, reason, start_time, end_time,
                        status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    stored.id,
                    stored.account_id,
                    stored.reason,
                    to_storage(stored.start_time),
                    to_storage(stored.end_time),
                    stored.status.value,
                    now,
                    now,
                ))
                conn.commit()

        self.logger.info(
            "Period stored",
            period_id=stored.id,
            account_id=stored.account_id,
            start_time=stored.start_time.isoformat(),
            end_time=stored.end_time.isoformat()
        )
        return stored

    def query_due(
        self,
        status: PeriodStatus,
        reference: Any,
        boundary_field: str,
        limit: Optional[int] = None
    ) -> list[Period]:
        """
        Get periods in ``status`` whose ``boundary_field`` is strictly before
        ``reference``, in insertion order.

        Args:
            status: Status to match
            reference: Reference instant (aware datetime)
            boundary_field: ``start_time`` or ``end_time``
            limit: Maximum number of records to return

        Returns:
            Possibly empty list of periods
        """
        if boundary_field not in BOUNDARY_FIELDS:
            raise ValueError(f"Unknown boundary field: {boundary_field}")

        query = f"""
            SELECT * FROM periods
            WHERE status = ? AND {boundary_field} < ?
            ORDER BY seq
        """
        params: list[Any] = [PeriodStatus(status).value, to_storage(reference)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [self._row_to_period(row) for row in rows]

    def query_due_for(
        self,
        status: PeriodStatus,
        due_kind: DueKind,
        reference: Any,
        limit: Optional[int] = None
    ) -> list[Period]:
        """``query_due`` with the boundary field taken from ``due_kind``."""
        return self.query_due(status, reference, DueKind(due_kind).boundary_field, limit)

    def update_status(
        self,
        period_id: str,
        expected_status: PeriodStatus,
        new_status: PeriodStatus
    ) -> Period:
        """
        Compare-and-swap the status of a period.

        Raises:
            ConflictError: if the stored status no longer equals
                ``expected_status`` or the period does not exist
        """
        expected = PeriodStatus(expected_status)
        target = PeriodStatus(new_status)

        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    UPDATE periods SET status = ?, updated_at = ?
                    WHERE id = ? AND status = ?
                """, (target.value, to_storage(utc_now()), period_id, expected.value))
                conn.commit()

                if cursor.rowcount == 1:
                    row = conn.execute(
                        "SELECT * FROM periods WHERE id = ?", (period_id,)
                    ).fetchone()
                    return self._row_to_period(row)

                row = conn.execute(
                    "SELECT status FROM periods WHERE id = ?", (period_id,)
                ).fetchone()

        actual = row["status"] if row else None
        raise ConflictError(
            f"Status of period {period_id} is {actual!r}, expected {expected.value!r}",
            period_id=period_id,
            expected_status=expected.value,
            actual_status=actual,
        )

    def get_period(self, period_id: str) -> Optional[Period]:
        """Get a period by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM periods WHERE id = ?", (period_id,)
            ).fetchone()

        return self._row_to_period(row) if row else None

    def list_periods(
        self,
        status: Optional[PeriodStatus] = None,
        limit: int = 100
    ) -> list[Period]:
        """Get periods, optionally filtered by status, in insertion order."""
        with self._get_connection() as conn:
            if status is None:
                rows = conn.execute(
                    "SELECT * FROM periods ORDER BY seq LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM periods WHERE status = ? ORDER BY seq LIMIT ?",
                    (PeriodStatus(status).value, limit)
                ).fetchall()

        return [self._row_to_period(row) for row in rows]

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics."""
        with self._get_connection() as conn:
            total_count = conn.execute("SELECT COUNT(*) FROM periods").fetchone()[0]

            status_counts = {status.value: 0 for status in PeriodStatus}
            for row in conn.execute("""
                SELECT status, COUNT(*) as count FROM periods GROUP BY status
            """):
                status_counts[row[0]] = row[1]

        return {
            "total_periods": total_count,
            "periods_by_status": status_counts,
        }

    def copy_to(self, db_path: Union[str, Path]) -> "PeriodStore":
        """
        Snapshot every period into a new database file and open it.

        Writes to the returned store never reach this one.
        """
        target_path = Path(db_path)
        with self._lock:
            with self._get_connection() as conn:
                target = sqlite3.connect(target_path)
                try:
                    conn.backup(target)
                finally:
                    target.close()

        self.logger.info("Copied period store", source=str(self.db_path),
                         target=str(target_path))
        return PeriodStore(target_path)

    def _row_to_period(self, row: sqlite3.Row) -> Period:
        """Convert database row to Period object."""
        return Period(
            id=row["id"],
            account_id=row["account_id"],
            reason=row["reason"],
            start_time=from_storage(row["start_time"]),
            end_time=from_storage(row["end_time"]),
            status=PeriodStatus(row["status"]),
        )
