"""SQLite-backed persistence for incoming emails and dashboard problems."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from threading import RLock
from types import TracebackType
from typing import Self

from ..core.config import StorageSettings
from ..core.datetime_utils import from_timestamp, to_timestamp, utc_now
from ..core.interfaces import DashboardProblemStore, IncomingEmailRepository
from ..core.models import DashboardProblem, IncomingEmailRecord

LOGGER = logging.getLogger(__name__)

_MIGRATIONS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS incoming_emails (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        message_id TEXT,
        from_address TEXT,
        to_addresses TEXT NOT NULL DEFAULT '',
        subject TEXT,
        raw BLOB NOT NULL,
        rejection_message TEXT,
        created_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dashboard_problems (
        key TEXT PRIMARY KEY,
        message TEXT NOT NULL,
        expires_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS error_counters (
        name TEXT PRIMARY KEY,
        value INTEGER NOT NULL,
        expires_at REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS error_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        occurred_at REAL NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_error_events_name_time
        ON error_events(name, occurred_at)
    """,
)


class SqliteDatabase:
    """Shared connection handling and schema setup for the SQLite stores."""

    def __init__(
        self,
        settings: StorageSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Open the database file and apply migrations."""
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        # One connection is shared by the scheduler and API worker threads.
        self._lock = RLock()
        self._clock = clock
        self._apply_migrations()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> Self:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._connection.close()

    def _now(self) -> float:
        return to_timestamp(self._clock())

    def _apply_migrations(self) -> None:
        with self._lock, self._connection:
            for statement in _MIGRATIONS:
                self._connection.execute(statement)


class SqliteIncomingEmailRepository(SqliteDatabase, IncomingEmailRepository):
    """Persist incoming email records."""

    def create(self, record: IncomingEmailRecord) -> IncomingEmailRecord:
        with self._lock, self._connection:
            cursor = self._connection.execute(
                """
                INSERT INTO incoming_emails (
                    message_id,
                    from_address,
                    to_addresses,
                    subject,
                    raw,
                    rejection_message,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.message_id,
                    record.from_address,
                    ",".join(record.to_addresses),
                    record.subject,
                    record.raw,
                    record.rejection_message,
                    to_timestamp(record.created_at),
                ),
            )
        record.id = cursor.lastrowid
        return record

    def fetch(self, record_id: int) -> IncomingEmailRecord | None:
        with self._lock:
            row = self._connection.execute(
                "SELECT * FROM incoming_emails WHERE id = ?", (record_id,)
            ).fetchone()
        if row is None:
            return None
        created_at = from_timestamp(row["created_at"])
        assert created_at is not None
        return IncomingEmailRecord(
            id=row["id"],
            message_id=row["message_id"],
            from_address=row["from_address"],
            to_addresses=tuple(
                address for address in row["to_addresses"].split(",") if address
            ),
            subject=row["subject"],
            raw=bytes(row["raw"]),
            created_at=created_at,
            rejection_message=row["rejection_message"],
        )

    def set_rejection_message(self, record_id: int, message: str) -> None:
        """Overwrite the rejection explanation; a missing record is an error."""
        with self._lock, self._connection:
            cursor = self._connection.execute(
                "UPDATE incoming_emails SET rejection_message = ? WHERE id = ?",
                (message, record_id),
            )
        if cursor.rowcount != 1:
            raise LookupError(f"Incoming email {record_id} does not exist")
        LOGGER.debug("Stored rejection message for incoming email %s", record_id)


class SqliteDashboardProblems(SqliteDatabase, DashboardProblemStore):
    """Keyed problems shown on the admin dashboard until they expire."""

    def add_problem(self, key: str, message: str, expiry: timedelta) -> None:
        """Insert the problem or refresh its message and expiry."""
        expires_at = self._now() + expiry.total_seconds()
        with self._lock, self._connection:
            self._connection.execute(
                """
                INSERT INTO dashboard_problems (key, message, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    message=excluded.message,
                    expires_at=excluded.expires_at
                """,
                (key, message, expires_at),
            )

    def active_problems(self) -> list[DashboardProblem]:
        now = self._now()
        with self._lock:
            with self._connection:
                self._connection.execute(
                    "DELETE FROM dashboard_problems WHERE expires_at <= ?", (now,)
                )
            rows = self._connection.execute(
                "SELECT key, message, expires_at FROM dashboard_problems ORDER BY key"
            ).fetchall()
        problems = []
        for row in rows:
            expires_at = from_timestamp(row["expires_at"])
            assert expires_at is not None
            problems.append(
                DashboardProblem(
                    key=row["key"], message=row["message"], expires_at=expires_at
                )
            )
        return problems


__all__ = [
    "SqliteDashboardProblems",
    "SqliteDatabase",
    "SqliteIncomingEmailRepository",
]
