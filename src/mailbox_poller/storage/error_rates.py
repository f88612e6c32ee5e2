"""SQLite-backed error-rate counters shared across processes and restarts.

Two shapes are stored:

* counters (``increment``/``expire``/``count``/``reset``): an integer per name
  with an optional expiry instant. A counter whose expiry is at or before the
  current time is gone; the next ``increment`` starts it again at 1 without
  an expiry.
* event sets (``add_event``/``prune_and_count``): one timestamped row per
  event, pruned lazily when counted.

Every mutation is a single SQL statement, so concurrent writers sharing the
database file never lose an update.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from ..core.interfaces import ErrorRateStore
from .sqlite import SqliteDatabase

LOGGER = logging.getLogger(__name__)


class SqliteErrorRateStore(SqliteDatabase, ErrorRateStore):
    """Error-rate store persisted in the application database."""

    def increment(self, name: str) -> int:
        with self._lock, self._connection:
            # RETURNING rows must be drained before the commit.
            (row,) = self._connection.execute(
                """
                INSERT INTO error_counters (name, value, expires_at)
                VALUES (:name, 1, NULL)
                ON CONFLICT(name) DO UPDATE SET
                    value = CASE
                        WHEN error_counters.expires_at IS NOT NULL
                            AND error_counters.expires_at <= :now THEN 1
                        ELSE error_counters.value + 1
                    END,
                    expires_at = CASE
                        WHEN error_counters.expires_at IS NOT NULL
                            AND error_counters.expires_at <= :now THEN NULL
                        ELSE error_counters.expires_at
                    END
                RETURNING value
                """,
                {"name": name, "now": self._now()},
            ).fetchall()
        count = int(row["value"])
        LOGGER.debug("Counter %s incremented to %s", name, count)
        return count

    def expire(self, name: str, duration: timedelta) -> None:
        with self._lock, self._connection:
            self._connection.execute(
                """
                UPDATE error_counters SET expires_at = ?
                WHERE name = ? AND expires_at IS NULL
                """,
                (self._now() + duration.total_seconds(), name),
            )

    def count(self, name: str) -> int:
        with self._lock:
            row = self._connection.execute(
                """
                SELECT value FROM error_counters
                WHERE name = ? AND (expires_at IS NULL OR expires_at > ?)
                """,
                (name, self._now()),
            ).fetchone()
        return int(row["value"]) if row is not None else 0

    def reset(self, name: str) -> None:
        with self._lock, self._connection:
            self._connection.execute(
                "DELETE FROM error_counters WHERE name = ?", (name,)
            )

    def add_event(self, name: str) -> None:
        with self._lock, self._connection:
            self._connection.execute(
                "INSERT INTO error_events (name, occurred_at) VALUES (?, ?)",
                (name, self._now()),
            )

    def prune_and_count(self, name: str, max_age: timedelta) -> int:
        cutoff = self._now() - max_age.total_seconds()
        with self._lock:
            with self._connection:
                self._connection.execute(
                    "DELETE FROM error_events WHERE name = ? AND occurred_at <= ?",
                    (name, cutoff),
                )
            row = self._connection.execute(
                "SELECT COUNT(*) AS total FROM error_events WHERE name = ?", (name,)
            ).fetchone()
        return int(row["total"])


__all__ = ["SqliteErrorRateStore"]
