"""
Data models for storage layer.

Defines the persisted listening event record.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence


def parse_timestamp(ts: str) -> datetime:
    """Parse an export timestamp such as "2024-01-01T12:00:00Z".
    
    Raises:
        ValueError: If the value is not an ISO-8601 string
    """
    if not isinstance(ts, str) or not ts.strip():
        raise ValueError(f"Invalid timestamp: {ts!r}")
    value = ts.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def format_utc(moment: datetime) -> str:
    """Render an instant as "YYYY-MM-DDTHH:MM:SS.ffffffZ" in UTC.

    Naive values are taken to be system local time.
    """
    return moment.astimezone(timezone.utc).strftime(UTC_FORMAT)


UTC_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@dataclass(frozen=True)
class ListeningEvent:
    """One play or skip from an exported streaming history.
    
    Source fields keep the export's names. Calendar, duration and content
    type fields are derived once at import and stored alongside; they are
    never recomputed from ``ts`` afterwards.
    """
    ts: str
    ms_played: int
    year: int
    month: int  # 1-12
    date: str  # YYYY-MM-DD, local
    hour: int
    day_of_week: int  # Sunday=0
    minutes_played: int
    played_at_utc: str  # fixed-width UTC instant, sorts as text
    spotify_track_uri: Optional[str] = None
    spotify_episode_uri: Optional[str] = None
    audiobook_uri: Optional[str] = None
    master_metadata_track_name: Optional[str] = None
    master_metadata_album_artist_name: Optional[str] = None
    master_metadata_album_album_name: Optional[str] = None
    platform: Optional[str] = None
    skipped: bool = False
    reason_end: Optional[str] = None
    is_track: bool = False
    is_podcast: bool = False
    is_audiobook: bool = False
    id: Optional[int] = None

    @property
    def played_at(self) -> datetime:
        """Instant of the play in UTC, for ordering only."""
        return parse_timestamp(self.played_at_utc)

    @property
    def artist(self) -> Optional[str]:
        return self.master_metadata_album_artist_name

    @property
    def track_name(self) -> Optional[str]:
        return self.master_metadata_track_name

    def to_dict(self) -> Dict[str, Any]:
        """Persisted record shape: ingest fields plus derived fields."""
        return asdict(self)

    def to_row(self) -> tuple:
        return tuple(getattr(self, name) for name in COLUMNS)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "ListeningEvent":
        values = dict(zip(COLUMNS, row))
        for flag in BOOLEAN_COLUMNS:
            values[flag] = bool(values[flag])
        return cls(**values)


COLUMNS = tuple(f.name for f in fields(ListeningEvent))
BOOLEAN_COLUMNS = ("skipped", "is_track", "is_podcast", "is_audiobook")
