"""
SQLite Event Store - append-only event log with optimistic locking

The event store is the ledger's data-access layer and its source of truth.
It provides:
- Append-only semantics (events never modified or deleted)
- Idempotency via command_id (same command = same events)
- Optimistic locking via per-stream versions
- Atomic multi-stream appends: an order event and the budget balance event
  it causes are written in one transaction or not at all
- A global position sequence so readers can catch up incrementally
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, NamedTuple

from broker_ledger.kernel.errors import (
    EventStoreError,
    StreamVersionConflict,
)
from broker_ledger.kernel.events import Event
from broker_ledger.kernel.logging import get_logger
from broker_ledger.kernel.metrics import events_appended_total
from broker_ledger.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    position, event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


class StreamAppend(NamedTuple):
    """Events for one stream plus the version the writer based them on"""

    stream_id: str
    expected_version: int
    events: list[Event]


class SQLiteEventStore:
    """
    SQLite-based event store

    Schema:
    - events table, ``position`` is a global insertion sequence
    - Unique constraints: event_id, (stream_id, version)
    - Indices: stream_id, event_type, command_id

    Writes open the transaction with BEGIN IMMEDIATE, taking SQLite's write
    lock before the version check, so check-and-insert is a single atomic
    step across processes.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    position INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL UNIQUE,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream "
                "ON events(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command ON events(command_id)"
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Connection in autocommit mode - transactions are opened explicitly
        """
        conn = sqlite3.connect(str(self.db_path), timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a single stream

        Args:
            stream_id: Aggregate identifier
            expected_version: Version the caller read before deciding
            events: Events with sequential versions starting at expected_version + 1

        Returns:
            The appended events (or the stored ones if the command already ran)
        """
        return self.append_atomic([StreamAppend(stream_id, expected_version, events)])

    @retry_on_sqlite_lock()
    def append_atomic(self, batches: list[StreamAppend]) -> list[Event]:
        """
        Append events to several streams in one transaction

        Either every batch is written or none is. Each stream's current
        version is compared with the batch's expected version inside the
        write transaction.

        Args:
            batches: One StreamAppend per affected stream

        Returns:
            The appended events (or the stored ones if the command already ran)

        Raises:
            StreamVersionConflict: If any stream moved since the caller read it
            EventStoreError: On malformed batches or other database errors
        """
        batches = [batch for batch in batches if batch.events]
        if not batches:
            return []

        for batch in batches:
            self._check_batch(batch)

        command_id = batches[0].events[0].command_id
        existing = self.load_command_events(command_id)
        if existing:
            # Command already processed - idempotent success
            return existing

        all_events = [event for batch in batches for event in batch.events]

        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for batch in batches:
                    current_version = self._get_stream_version(conn, batch.stream_id)
                    if current_version != batch.expected_version:
                        raise StreamVersionConflict(
                            batch.stream_id, batch.expected_version, current_version
                        )

                for event in all_events:
                    conn.execute(
                        """
                        INSERT INTO events (
                            event_id, stream_id, stream_type, version,
                            command_id, event_type, occurred_at, actor_id, payload_json
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            event.event_id,
                            event.stream_id,
                            event.stream_type,
                            event.version,
                            event.command_id,
                            event.event_type,
                            event.occurred_at.isoformat(),
                            event.actor_id,
                            json.dumps(event.payload),
                        ),
                    )

                conn.execute("COMMIT")

            except StreamVersionConflict:
                conn.execute("ROLLBACK")
                raise

            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                error_msg = str(e).lower()
                if "stream_id" in error_msg and "version" in error_msg:
                    first = batches[0]
                    raise StreamVersionConflict(
                        first.stream_id,
                        first.expected_version,
                        self.get_stream_version(first.stream_id),
                    ) from e
                raise EventStoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                conn.execute("ROLLBACK")
                raise

            except Exception as e:
                conn.execute("ROLLBACK")
                raise EventStoreError(f"Unexpected error appending events: {e}") from e

        for event in all_events:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()
        logger.debug(
            "Events appended",
            streams=[batch.stream_id for batch in batches],
            count=len(all_events),
        )
        return all_events

    def _check_batch(self, batch: StreamAppend) -> None:
        """Validate that a batch is internally consistent"""
        command_ids = {event.command_id for event in batch.events}
        if len(command_ids) != 1:
            raise EventStoreError("All events of an append must share one command_id")

        for offset, event in enumerate(batch.events, start=1):
            if event.stream_id != batch.stream_id:
                raise EventStoreError(
                    f"Event {event.event_id} belongs to {event.stream_id}, "
                    f"not {batch.stream_id}"
                )
            if event.version != batch.expected_version + offset:
                raise EventStoreError(
                    f"Event {event.event_id} has version {event.version}, "
                    f"expected {batch.expected_version + offset}"
                )

    def load_stream(self, stream_id: str) -> list[Event]:
        """
        Load all events for a stream in version order

        Returns:
            List of events (empty if stream doesn't exist)
        """
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def load_all_events(self) -> list[Event]:
        """Load every event in insertion order (for projection rebuilds)"""
        return [event for _, event in self.load_events_after(0)]

    def load_events_after(
        self, position: int, limit: int | None = None
    ) -> list[tuple[int, Event]]:
        """
        Load events written after a global position

        Args:
            position: Last position the reader has already applied (0 = start)
            limit: Maximum number of events to return, or None for all

        Returns:
            (position, event) pairs in insertion order
        """
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE position > ? ORDER BY position ASC"
        params: tuple = (position,)
        if limit:
            query += " LIMIT ?"
            params = (position, limit)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [(row["position"], self._row_to_event(row)) for row in cursor.fetchall()]

    def query_events(
        self,
        *,
        stream_type: str | None = None,
        event_type: str | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """
        Query events by various criteria (audit views)

        Returns:
            Matching events in insertion order
        """
        conditions = []
        params: list = []

        if stream_type:
            conditions.append("stream_type = ?")
            params.append(stream_type)
        if event_type:
            conditions.append("event_type = ?")
            params.append(event_type)
        if from_time:
            conditions.append("occurred_at >= ?")
            params.append(from_time.isoformat())
        if to_time:
            conditions.append("occurred_at <= ?")
            params.append(to_time.isoformat())

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE {where_clause} ORDER BY position ASC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def load_command_events(self, command_id: str) -> list[Event]:
        """Events written by a command, in insertion order (empty if it never ran)"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE command_id = ? ORDER BY position ASC",
                (command_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def current_position(self) -> int:
        """Highest global position written so far"""
        with self._connect() as conn:
            cursor = conn.execute("SELECT MAX(position) FROM events")
            row = cursor.fetchone()
            return row[0] if row[0] is not None else 0

    def count_events(self) -> int:
        """Get total number of events in store"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def count_streams(self) -> int:
        """Get total number of distinct streams"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT stream_id) FROM events").fetchone()[0]


__all__ = ["SQLiteEventStore", "StreamAppend"]
