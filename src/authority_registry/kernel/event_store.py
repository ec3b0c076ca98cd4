"""
SQLite Event Store - the durable audit log

One table, append-only. Each registry writes a single stream; the
(stream_id, version) pair is unique, which is what turns two concurrent
writers into a StreamVersionConflict instead of a forked history.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from authority_registry.kernel.errors import (
    DuplicateEventId,
    EventStoreError,
    StreamVersionConflict,
)
from authority_registry.kernel.events import Event
from authority_registry.kernel.logging import get_logger
from authority_registry.kernel.metrics import (
    events_appended_total,
    events_loaded_total,
    stream_version_conflicts_total,
)
from authority_registry.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)


class SQLiteEventStore:
    """
    Append-only event log in a SQLite file (WAL mode)

    Readers never block the writer, so a health probe or a second registry
    instance can read the stream while another process appends.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id TEXT PRIMARY KEY,
                    stream_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a stream, all or none

        Args:
            stream_id: Registry stream
            expected_version: Version the caller's projection is at
            events: Events numbered expected_version + 1, + 2, ...

        Returns:
            The events as stored

        Raises:
            StreamVersionConflict: Another writer appended first
            DuplicateEventId: An event id is already in the store
            EventStoreError: On other database errors
        """
        if not events:
            return []

        with self._connect() as conn:
            try:
                current_version = self._get_stream_version(conn, stream_id)
                if current_version != expected_version:
                    raise StreamVersionConflict(stream_id, expected_version, current_version)

                conn.executemany(
                    "INSERT INTO events "
                    "(event_id, stream_id, version, event_type, occurred_at, payload_json) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (
                            event.event_id,
                            stream_id,
                            event.version,
                            event.event_type,
                            event.occurred_at.isoformat(),
                            json.dumps(event.payload),
                        )
                        for event in events
                    ],
                )
                conn.commit()

            except StreamVersionConflict:
                stream_version_conflicts_total.labels(stream_id=stream_id).inc()
                raise

            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()

                # Another writer took the same version between our check and insert
                if "version" in error_msg:
                    stream_version_conflicts_total.labels(stream_id=stream_id).inc()
                    current = self._get_stream_version(conn, stream_id)
                    raise StreamVersionConflict(stream_id, expected_version, current) from e

                if "event_id" in error_msg:
                    stored = self._find_stored_id(conn, [event.event_id for event in events])
                    raise DuplicateEventId(stored) from e

                raise EventStoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                # Lock contention - let the retry decorator see it
                conn.rollback()
                raise

        for event in events:
            events_appended_total.labels(stream_id=stream_id, event_type=event.event_type).inc()
        logger.debug(
            "Events appended",
            stream_id=stream_id,
            event_count=len(events),
            new_version=events[-1].version,
        )
        return events

    def load_stream(self, stream_id: str, after_version: int = 0) -> list[Event]:
        """
        Events of a stream in version order

        Args:
            stream_id: Registry stream
            after_version: Only events with a greater version (for catch-up)
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT event_id, stream_id, version, event_type, occurred_at, payload_json
                FROM events
                WHERE stream_id = ? AND version > ?
                ORDER BY version ASC
                """,
                (stream_id, after_version),
            ).fetchall()

        if rows:
            events_loaded_total.labels(stream_id=stream_id).inc(len(rows))
        return [
            Event(
                event_id=row["event_id"],
                stream_id=row["stream_id"],
                version=row["version"],
                event_type=row["event_type"],
                occurred_at=datetime.fromisoformat(row["occurred_at"]),
                payload=json.loads(row["payload_json"]),
            )
            for row in rows
        ]

    def get_stream_version(self, stream_id: str) -> int:
        """Current stream version (0 if the stream has no events)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        row = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        ).fetchone()
        return row[0] if row[0] is not None else 0

    def _find_stored_id(self, conn: sqlite3.Connection, event_ids: list[str]) -> str:
        placeholders = ", ".join("?" for _ in event_ids)
        row = conn.execute(
            f"SELECT event_id FROM events WHERE event_id IN ({placeholders}) LIMIT 1",
            event_ids,
        ).fetchone()
        return row["event_id"] if row else event_ids[0]
