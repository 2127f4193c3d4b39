"""
Import pipeline for exported streaming history.

Validates raw export records and enriches them with the derived calendar,
duration and content type fields that every later query relies on.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import orjson

from listening_stats.storage.models import ListeningEvent, format_utc, parse_timestamp

from .rounding import round_half_up

logger = logging.getLogger(__name__)

TimezoneLike = Union[str, tzinfo, None]

SOURCE_FIELDS = (
    "spotify_track_uri",
    "spotify_episode_uri",
    "audiobook_uri",
    "master_metadata_track_name",
    "master_metadata_album_artist_name",
    "master_metadata_album_album_name",
    "platform",
    "reason_end",
)


class MalformedRecord(ValueError):
    """Raised when a raw record has no usable timestamp or duration."""


class ExportFormatError(Exception):
    """Raised when an export file is not a JSON array of records."""


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one import batch."""
    imported: int
    skipped: int
    total: int


def resolve_timezone(tz: TimezoneLike) -> Optional[tzinfo]:
    """Turn an IANA zone name into a tzinfo; None means the system zone.

    Raises:
        ValueError: If the zone name is unknown
    """
    if tz is None or isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz}") from e


def to_local(moment: datetime, tz: Optional[tzinfo]) -> datetime:
    """Express ``moment`` as wall-clock time in ``tz``.

    Naive values are taken to already be wall-clock time in that zone.
    """
    if moment.tzinfo is None:
        return moment if tz is None else moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _validate_ms_played(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedRecord(f"ms_played must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise MalformedRecord(f"ms_played must be an integer, got {value!r}")
    if value < 0:
        raise MalformedRecord(f"ms_played cannot be negative, got {value}")
    return value


def enrich_record(raw: Mapping[str, Any], tz: TimezoneLike = None) -> ListeningEvent:
    """Validate one raw export record and compute its derived fields.

    Calendar fields are taken from ``ts`` interpreted as wall-clock time
    in ``tz`` (the system zone when None). The same instant is stored in
    UTC as ``played_at_utc``, so timestamps with and without an offset
    order together. Minutes are rounded half up. Content flags reflect
    which URI field carries a value.

    Args:
        raw: One element of an exported streaming history file
        tz: IANA zone name or tzinfo used for the calendar fields

    Returns:
        Enriched ListeningEvent, without a store id unless ``raw`` had one

    Raises:
        MalformedRecord: If ``ts`` or ``ms_played`` is missing or invalid
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"Record must be an object, got {type(raw).__name__}")

    ts = raw.get("ts")
    try:
        moment = parse_timestamp(ts)
    except (TypeError, ValueError) as e:
        raise MalformedRecord(f"Invalid ts {ts!r}: {e}") from e

    if "ms_played" not in raw or raw["ms_played"] is None:
        raise MalformedRecord("Missing ms_played")
    ms_played = _validate_ms_played(raw["ms_played"])

    record_id = raw.get("id")
    if record_id is not None and (isinstance(record_id, bool) or not isinstance(record_id, int)):
        raise MalformedRecord(f"id must be an integer, got {record_id!r}")

    local = to_local(moment, resolve_timezone(tz))
    source = {name: raw.get(name) for name in SOURCE_FIELDS}

    return ListeningEvent(
        ts=ts,
        ms_played=ms_played,
        year=local.year,
        month=local.month,
        date=local.date().isoformat(),
        hour=local.hour,
        day_of_week=(local.weekday() + 1) % 7,
        minutes_played=round_half_up(ms_played / 60000),
        played_at_utc=format_utc(local),
        skipped=bool(raw.get("skipped")),
        is_track=bool(source["spotify_track_uri"]),
        is_podcast=bool(source["spotify_episode_uri"]),
        is_audiobook=bool(source["audiobook_uri"]),
        id=record_id,
        **source,
    )


def chunked(records: Iterable[Any], size: int) -> Iterator[List[Any]]:
    """Split ``records`` into lists of at most ``size`` items."""
    if size <= 0:
        raise ValueError("chunk size must be > 0")
    chunk: List[Any] = []
    for record in records:
        chunk.append(record)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def read_export_file(path: Union[str, Path]) -> List[Mapping[str, Any]]:
    """Load one Extended Streaming History JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ExportFormatError: If the file is not a JSON array
    """
    export_path = Path(path)
    if not export_path.exists():
        raise FileNotFoundError(f"Export file not found: {path}")

    try:
        data = orjson.loads(export_path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ExportFormatError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, list):
        raise ExportFormatError(f"Expected a JSON array of records in {path}")

    logger.debug("Read %d records from %s", len(data), export_path)
    return data


def read_export_files(paths: Iterable[Union[str, Path]]) -> List[Mapping[str, Any]]:
    """Load several export files; directories contribute their *.json files."""
    records: List[Mapping[str, Any]] = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            for child in sorted(path.glob("*.json")):
                records.extend(read_export_file(child))
        else:
            records.extend(read_export_file(path))
    return records
