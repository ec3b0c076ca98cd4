"""
Projection Store - Persisted snapshots of read models

A snapshot is the serialized authorization projection together with the
stream version it reflects. On open, the registry loads the snapshot and
replays only the events after that version. A snapshot that lags behind
the stream is still valid: the missing events are simply replayed.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel


class ProjectionState(BaseModel):
    """
    State of a projection with position tracking

    position_version is the last stream version folded into state.
    """

    name: str
    position_version: int = 0
    state: dict[str, Any]
    updated_at: datetime


class SQLiteProjectionStore:
    """
    SQLite-based projection store

    Schema:
    - projections table: projection name, stream position, and state JSON
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize projection store with SQLite database

        Args:
            db_path: Path to SQLite database file (can be same as event store)
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projections (
                    name TEXT PRIMARY KEY,
                    position_version INTEGER NOT NULL DEFAULT 0,
                    state_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
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

    def save(
        self,
        name: str,
        state: dict[str, Any],
        position_version: int = 0,
    ) -> None:
        """
        Save or update a projection snapshot

        Args:
            name: Projection name (e.g., "authorization_set:authority-registry")
            state: Projection state (must be JSON-serializable)
            position_version: Stream version the state reflects
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO projections (name, position_version, state_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    position_version = excluded.position_version,
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
            """,
                (
                    name,
                    position_version,
                    json.dumps(state),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    def load(self, name: str) -> ProjectionState | None:
        """
        Load a projection snapshot by name

        Returns:
            ProjectionState if exists, None otherwise
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT name, position_version, state_json, updated_at "
                "FROM projections WHERE name = ?",
                (name,),
            )
            row = cursor.fetchone()

            if not row:
                return None

            return ProjectionState(
                name=row["name"],
                position_version=row["position_version"],
                state=json.loads(row["state_json"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
