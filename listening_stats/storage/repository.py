"""
Repository pattern for data access.

Holds enriched listening events in SQLite and answers the indexed
queries the aggregations run over.
"""

import logging
import sqlite3
import threading
from datetime import date, datetime, time, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from listening_stats.core.importer import (
    ImportResult,
    MalformedRecord,
    TimezoneLike,
    chunked,
    enrich_record,
    resolve_timezone,
    to_local,
)
from listening_stats.core.rounding import round_half_up, safe_ratio

from .db import MEMORY_DB, StoreUnavailable, get_connection
from .models import COLUMNS, ListeningEvent, format_utc, parse_timestamp

logger = logging.getLogger(__name__)

TABLE = "listening_history"
DEFAULT_CHUNK_SIZE = 1000

# Index name -> indexed column
INDEXES = {
    "idx_history_ts": "ts",
    "idx_history_played_at": "played_at_utc",
    "idx_history_track_uri": "spotify_track_uri",
    "idx_history_artist": "master_metadata_album_artist_name",
    "idx_history_track_name": "master_metadata_track_name",
    "idx_history_year": "year",
    "idx_history_skipped": "skipped",
}

DateBound = Union[str, date, datetime]
ProgressCallback = Callable[[int, int], None]

_SELECT = f"SELECT {', '.join(COLUMNS)} FROM {TABLE}"
_INSERT = (
    f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in COLUMNS)})"
)


class DuplicateRecord(Exception):
    """Raised when a record's explicit id is already in the store."""

    def __init__(self, record_id: Optional[int]):
        super().__init__(f"Record with id {record_id} already exists")
        self.record_id = record_id


def _instant_bound(value: DateBound, end: bool, zone: Optional[tzinfo]) -> str:
    """Render a range bound as a stored ``played_at_utc`` value.

    Dates cover the whole local day in ``zone``; naive datetimes and
    offset-less strings are wall-clock time in ``zone``.
    """
    if isinstance(value, str):
        moment = parse_timestamp(value)
    elif isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.combine(value, time.max if end else time.min)
    return format_utc(to_local(moment, zone))


class HistoryRepository:
    """Durable store of listening events with indexed retrieval.

    Each instance owns one connection with an explicit open/close
    lifecycle. Operations are serialized per instance and each one runs
    as its own transaction; callers must not run overlapping imports or
    clears against the same database file from separate instances.
    """

    def __init__(self, db_path: str = "listening_stats.db", tz: TimezoneLike = None):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            tz: Timezone used to derive calendar fields at import
        """
        self.db_path = db_path
        self.tz = tz
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def __enter__(self) -> "HistoryRepository":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "HistoryRepository":
        """Open the connection and make sure the schema exists.

        Raises:
            StoreUnavailable: If the database cannot be opened
        """
        with self._lock:
            if self._conn is None:
                self._conn = get_connection(self.db_path)
                logger.info("Database opened: %s", self.db_path)
            self.init()
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database closed: %s", self.db_path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreUnavailable("Repository is not open. Call open() first.")
        return self._conn

    def init(self) -> None:
        """Create the history table and its indexes if they don't exist.

        Safe to call any number of times.

        Raises:
            StoreUnavailable: If the schema cannot be created
        """
        with self._lock:
            conn = self._connection()
            try:
                with conn:
                    conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS {TABLE} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            ts TEXT NOT NULL,
                            ms_played INTEGER NOT NULL,
                            year INTEGER NOT NULL,
                            month INTEGER NOT NULL,
                            date TEXT NOT NULL,
                            hour INTEGER NOT NULL,
                            day_of_week INTEGER NOT NULL,
                            minutes_played INTEGER NOT NULL,
                            played_at_utc TEXT NOT NULL,
                            spotify_track_uri TEXT,
                            spotify_episode_uri TEXT,
                            audiobook_uri TEXT,
                            master_metadata_track_name TEXT,
                            master_metadata_album_artist_name TEXT,
                            master_metadata_album_album_name TEXT,
                            platform TEXT,
                            skipped INTEGER NOT NULL DEFAULT 0,
                            reason_end TEXT,
                            is_track INTEGER NOT NULL DEFAULT 0,
                            is_podcast INTEGER NOT NULL DEFAULT 0,
                            is_audiobook INTEGER NOT NULL DEFAULT 0
                        )
                    """)
                    for name, column in INDEXES.items():
                        conn.execute(
                            f"CREATE INDEX IF NOT EXISTS {name} ON {TABLE} ({column})"
                        )
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Cannot initialize schema: {e}") from e

    def _insert(self, conn: sqlite3.Connection, event: ListeningEvent) -> int:
        try:
            cursor = conn.execute(_INSERT, event.to_row())
        except sqlite3.IntegrityError as e:
            raise DuplicateRecord(event.id) from e
        return cursor.lastrowid

    def add_event(self, event: ListeningEvent) -> int:
        """Insert a single enriched event.

        Returns:
            The id the event was stored under

        Raises:
            DuplicateRecord: If the event carries an id that already exists
        """
        with self._lock:
            conn = self._connection()
            with conn:
                return self._insert(conn, event)

    def import_history(
        self,
        records: Iterable[Mapping[str, Any]],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Enrich and store a batch of raw export records.

        Every record is attempted on its own: a malformed record or an id
        conflict is counted as skipped and the batch carries on. Work is
        committed per chunk; chunking bounds memory and drives ``progress``
        but has no effect on the result.

        Args:
            records: Raw export records
            chunk_size: Records per committed chunk
            progress: Called with (attempted, total) after every chunk

        Returns:
            ImportResult with counts, available once every record was attempted
        """
        records = list(records)
        total = len(records)
        imported = 0
        skipped = 0
        logger.info("Starting import of %d records...", total)

        with self._lock:
            conn = self._connection()
            for chunk in chunked(records, chunk_size):
                with conn:
                    for raw in chunk:
                        try:
                            self._insert(conn, enrich_record(raw, self.tz))
                            imported += 1
                        except (MalformedRecord, DuplicateRecord) as e:
                            skipped += 1
                            logger.debug("Skipped record: %s", e)
                done = imported + skipped
                logger.debug("Progress: %d/%d", done, total)
                if progress is not None:
                    progress(done, total)

        logger.info("Import complete: %d imported, %d skipped", imported, skipped)
        return ImportResult(imported=imported, skipped=skipped, total=total)

    def clear_history(self) -> None:
        """Delete every stored record."""
        with self._lock:
            conn = self._connection()
            with conn:
                conn.execute(f"DELETE FROM {TABLE}")
        logger.info("History cleared")

    def _fetch(self, query: str, params: Iterable[Any] = ()) -> List[ListeningEvent]:
        with self._lock:
            cursor = self._connection().execute(query, tuple(params))
            return [ListeningEvent.from_row(row) for row in cursor.fetchall()]

    def get_count(self) -> int:
        with self._lock:
            return self._connection().execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()[0]

    def get_all(self, limit: Optional[int] = None) -> List[ListeningEvent]:
        """Get stored events in insertion order, optionally capped at ``limit``."""
        if limit:
            return self._fetch(f"{_SELECT} ORDER BY id LIMIT ?", (limit,))
        return self._fetch(f"{_SELECT} ORDER BY id")

    def get_by_year(self, year: int) -> List[ListeningEvent]:
        return self._fetch(f"{_SELECT} WHERE year = ? ORDER BY id", (year,))

    def get_by_date_range(self, start: DateBound, end: DateBound) -> List[ListeningEvent]:
        """Get events played within [start, end], compared as instants.

        Bounds may be export-style timestamp strings, datetimes, or dates
        covering whole days in the repository's timezone, matching the
        stored ``date`` and ``year`` fields. Results are in play order.

        Raises:
            ValueError: If a string bound is not an ISO-8601 timestamp
        """
        zone = resolve_timezone(self.tz)
        return self._fetch(
            f"{_SELECT} WHERE played_at_utc BETWEEN ? AND ? ORDER BY played_at_utc, id",
            (_instant_bound(start, False, zone), _instant_bound(end, True, zone)),
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get overall statistics for the stored history.

        Returns:
            Dictionary of store statistics; only ``total_records`` and
            ``has_data`` when the store is empty
        """
        with self._lock:
            row = self._connection().execute(f"""
                SELECT
                    COUNT(*),
                    MIN(played_at_utc),
                    MAX(played_at_utc),
                    MIN(year),
                    MAX(year),
                    SUM(minutes_played),
                    SUM(is_track),
                    COUNT(DISTINCT spotify_track_uri),
                    COUNT(DISTINCT master_metadata_album_artist_name),
                    (SELECT ts FROM {TABLE} ORDER BY played_at_utc, id LIMIT 1),
                    (SELECT ts FROM {TABLE} ORDER BY played_at_utc DESC, id DESC LIMIT 1)
                FROM {TABLE}
            """).fetchone()

        count = row[0]
        if count == 0:
            return {"total_records": 0, "has_data": False}

        elapsed_days = (
            parse_timestamp(row[2]) - parse_timestamp(row[1])
        ).total_seconds() / 86400
        total_minutes = row[5] or 0

        return {
            "total_records": count,
            "has_data": True,
            "oldest_date": row[9],
            "newest_date": row[10],
            "years_covered": row[4] - row[3] + 1,
            "total_minutes": total_minutes,
            "total_hours": round_half_up(total_minutes / 60),
            "total_days": round_half_up(total_minutes / 60 / 24),
            "track_count": row[6] or 0,
            "unique_tracks": row[7],
            "unique_artists": row[8],
            "average_per_day": round_half_up(safe_ratio(count, elapsed_days)),
        }

    # Query surface used by the summary layer
    count = get_count
    all = get_all
    by_year = get_by_year
    by_date_range = get_by_date_range
    stats = get_stats


def open_repository(
    db_path: str = MEMORY_DB, tz: TimezoneLike = None
) -> HistoryRepository:
    """Construct and open a repository in one step."""
    return HistoryRepository(db_path, tz=tz).open()
