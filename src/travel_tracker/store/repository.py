"""SQLite-backed store for users, trips and email processing logs.

Uniqueness of trips is enforced by the schema: one trip per
(user, source message) and one per (user, booking reference) when a booking
reference is present. Inserts that violate either constraint raise
`DuplicateTripError`.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from travel_tracker.exceptions import DuplicateTripError, StoreError
from travel_tracker.models import (
    ProcessingLogEntry,
    ProcessingStatus,
    RawMessage,
    Trip,
    TripCandidate,
    User,
    trip_candidate_adapter,
)
from travel_tracker.models.trip import COMMON_FIELDS, FLIGHT_FIELDS, LODGING_FIELDS, TripKind

logger = structlog.get_logger()


_SCHEMA_VERSION = 1

_TRIP_DETAIL_COLUMNS: tuple[str, ...] = (*FLIGHT_FIELDS, *LODGING_FIELDS, *COMMON_FIELDS)

_KIND_COLUMNS: dict[str, tuple[str, ...]] = {
    TripKind.FLIGHT.value: FLIGHT_FIELDS,
    TripKind.HOTEL.value: LODGING_FIELDS,
    TripKind.VACATION_RENTAL.value: LODGING_FIELDS,
    TripKind.CAR_RENTAL.value: (),
    TripKind.OTHER.value: (),
}


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TripRepository:
    """Repository for users, trips and processing log entries."""

    def __init__(self, db_path: Path, busy_timeout_seconds: float = 30.0) -> None:
        """Create a repository.

        Args:
            db_path: Path to the SQLite database file.
            busy_timeout_seconds: How long a write waits for a competing writer.
        """

        self._db_path = db_path
        self._busy_timeout = busy_timeout_seconds

    def initialize(self) -> None:
        """Create or upgrade the schema."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version is None:
                self._create_schema_v1(conn)
                self._set_schema_version(conn, _SCHEMA_VERSION)
                conn.commit()
                logger.info("trip_store_schema_created", version=_SCHEMA_VERSION)
                return

            if current_version != _SCHEMA_VERSION:
                raise StoreError(
                    f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                )

    # Users

    def ensure_user(self, email: str, name: str | None = None) -> User:
        """Return the user for ``email``, creating it on first use."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (email, name, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET name = COALESCE(excluded.name, users.name)
                """,
                (email, name, _utcnow_iso()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()

        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    # Trips

    def find_duplicate_trip(
        self,
        user_id: int,
        source_message_id: str,
        booking_reference: str | None,
    ) -> int | None:
        """Return the ID of a trip that a new candidate would duplicate, if any."""

        query = "SELECT id FROM trips WHERE user_id = ? AND source_message_id = ?"
        params: list[Any] = [user_id, source_message_id]
        if booking_reference:
            query += " OR (user_id = ? AND booking_reference = ?)"
            params.extend([user_id, booking_reference])

        with self._connect() as conn:
            row = conn.execute(query + " LIMIT 1", params).fetchone()
        return int(row["id"]) if row else None

    def insert_trip(
        self,
        user_id: int,
        source_message_id: str,
        candidate: TripCandidate,
        raw_email_content: str | None = None,
    ) -> Trip:
        """Persist a new trip.

        Raises:
            DuplicateTripError: If the user already has a trip for the same
                source message or booking reference.
        """

        now_iso = _utcnow_iso()
        details = candidate.model_dump(exclude={"kind", "extracted_data"})
        row: dict[str, Any] = {name: details.get(name) for name in _TRIP_DETAIL_COLUMNS}
        row.update(
            user_id=user_id,
            source_message_id=source_message_id,
            kind=candidate.kind,
            extracted_data_json=json.dumps(candidate.extracted_data),
            parsed_data_json=candidate.model_dump_json(),
            raw_email_content=raw_email_content,
            created_at=now_iso,
            updated_at=now_iso,
        )

        columns = list(row)
        sql = (
            f"INSERT INTO trips ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})"
        )

        with self._connect() as conn:
            try:
                cursor = conn.execute(sql, row)
                conn.commit()
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" in str(exc).upper():
                    raise DuplicateTripError(
                        f"Trip already exists for message {source_message_id}"
                    ) from exc
                raise StoreError(str(exc)) from exc
            trip_id = cursor.lastrowid
            stored = conn.execute("SELECT * FROM trips WHERE id = ?", (trip_id,)).fetchone()

        return self._row_to_trip(stored)

    def list_trips(self, user_id: int) -> list[Trip]:
        """Return a user's trips, most recent travel first."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM trips
                WHERE user_id = ?
                ORDER BY departure_date DESC, check_in_date DESC, created_at DESC, id DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_trip(row) for row in rows]

    def count_trips(self, user_id: int) -> int:
        with self._connect() as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM trips WHERE user_id = ?", (user_id,)
            ).fetchone()
        return int(count or 0)

    def delete_trip(self, trip_id: int, user_id: int) -> bool:
        """Delete a trip owned by ``user_id``. Returns False if there was none."""

        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM trips WHERE id = ? AND user_id = ?", (trip_id, user_id)
            )
            conn.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("trip_deleted", trip_id=trip_id, user_id=user_id)
        return deleted

    # Processing log

    def create_log_entry(self, user_id: int, message: RawMessage) -> int:
        """Record that processing of ``message`` has started."""

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO email_processing_log (
                    user_id, source_message_id, subject, sender, date,
                    status, trips_found, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    user_id,
                    message.id,
                    message.subject,
                    message.sender,
                    message.date,
                    ProcessingStatus.PROCESSING.value,
                    _utcnow_iso(),
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def complete_log_entry(
        self,
        log_id: int,
        status: ProcessingStatus,
        *,
        trips_found: int = 0,
        processing_time_ms: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Move a log entry from ``processing`` to its terminal status."""

        if status is ProcessingStatus.PROCESSING:
            raise ValueError("terminal status required")

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE email_processing_log
                SET status = ?, trips_found = ?, processing_time_ms = ?, error_message = ?
                WHERE id = ? AND status = ?
                """,
                (
                    status.value,
                    trips_found,
                    processing_time_ms,
                    error_message,
                    log_id,
                    ProcessingStatus.PROCESSING.value,
                ),
            )
            conn.commit()
            updated = cursor.rowcount
        if updated == 0:
            logger.warning("log_entry_not_pending", log_id=log_id, status=status.value)

    def list_log_entries(self, user_id: int, limit: int | None = None) -> list[ProcessingLogEntry]:
        """Return a user's processing log, newest first."""

        sql = "SELECT * FROM email_processing_log WHERE user_id = ? ORDER BY created_at DESC, id DESC"
        params: list[Any] = [user_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_log_entry(row) for row in rows]

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=self._busy_timeout)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON;")
            yield conn
        finally:
            conn.close()

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                name TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS trips (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                source_message_id TEXT NOT NULL,
                kind TEXT NOT NULL
                    CHECK (kind IN ('flight', 'hotel', 'car_rental', 'vacation_rental', 'other')),

                airline TEXT,
                flight_number TEXT,
                aircraft_type TEXT,
                departure_airport TEXT,
                departure_airport_code TEXT,
                arrival_airport TEXT,
                arrival_airport_code TEXT,
                departure_date TEXT,
                departure_time TEXT,
                arrival_date TEXT,
                arrival_time TEXT,
                duration TEXT,
                seat_number TEXT,
                seat_class TEXT,

                hotel_name TEXT,
                hotel_address TEXT,
                check_in_date TEXT,
                check_out_date TEXT,
                room_type TEXT,
                guests INTEGER,

                origin_city TEXT,
                destination_city TEXT,
                origin_country TEXT,
                destination_country TEXT,
                booking_reference TEXT,
                confirmation_number TEXT,
                passenger_name TEXT,
                cost REAL,
                currency TEXT,
                booking_date TEXT,

                confidence_score REAL NOT NULL,
                extracted_data_json TEXT NOT NULL DEFAULT '{}',
                parsed_data_json TEXT,
                raw_email_content TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,

                UNIQUE (user_id, source_message_id)
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_trips_user_booking_reference
                ON trips(user_id, booking_reference)
                WHERE booking_reference IS NOT NULL;

            CREATE INDEX IF NOT EXISTS idx_trips_user_id ON trips(user_id);
            CREATE INDEX IF NOT EXISTS idx_trips_kind ON trips(kind);
            CREATE INDEX IF NOT EXISTS idx_trips_departure_date ON trips(departure_date);

            CREATE TABLE IF NOT EXISTS email_processing_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                source_message_id TEXT NOT NULL,
                subject TEXT,
                sender TEXT,
                date TEXT,
                status TEXT NOT NULL
                    CHECK (status IN ('processing', 'completed', 'failed')),
                error_message TEXT,
                trips_found INTEGER NOT NULL DEFAULT 0,
                processing_time_ms INTEGER,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_email_log_user_id ON email_processing_log(user_id);
            CREATE INDEX IF NOT EXISTS idx_email_log_status ON email_processing_log(status);
            """
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_trip(self, row: sqlite3.Row) -> Trip:
        kind = row["kind"]
        data: dict[str, Any] = {"kind": kind}
        for name in (*COMMON_FIELDS, *_KIND_COLUMNS[kind]):
            data[name] = row[name]
        data["extracted_data"] = json.loads(row["extracted_data_json"] or "{}")

        return Trip(
            id=row["id"],
            user_id=row["user_id"],
            source_message_id=row["source_message_id"],
            candidate=trip_candidate_adapter.validate_python(data),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_log_entry(self, row: sqlite3.Row) -> ProcessingLogEntry:
        return ProcessingLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            source_message_id=row["source_message_id"],
            subject=row["subject"],
            sender=row["sender"],
            date=row["date"],
            status=ProcessingStatus(row["status"]),
            trips_found=row["trips_found"],
            processing_time_ms=row["processing_time_ms"],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
