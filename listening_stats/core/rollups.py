"""
Yearly rollups and the all-time summary.

The two per-day averages here are intentionally different: the yearly
rollup always divides by 365, the complete summary divides by the days
actually elapsed between the oldest and newest play.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from listening_stats.storage.models import ListeningEvent

from .rounding import round_half_up, safe_ratio

DAYS_PER_YEAR = 365
MS_PER_MINUTE = 60000
MS_PER_HOUR = 3600000
MS_PER_DAY = 86400000


@dataclass(frozen=True)
class YearAggregate:
    """Non-skipped listening within one calendar year."""
    year: int
    plays: int
    total_ms: int
    total_minutes: int
    total_hours: int
    unique_tracks: int
    unique_artists: int
    average_per_day: int


@dataclass(frozen=True)
class CompleteSummary:
    """All-time totals over non-skipped track plays."""
    total_plays: int
    total_records: int
    total_minutes: int
    total_hours: int
    total_days: int
    unique_tracks: int
    unique_artists: int
    average_per_day: int
    oldest_date: Optional[str]
    newest_date: Optional[str]
    days_covered: int
    years_covered: int


def get_yearly_stats(records: Sequence[ListeningEvent]) -> List[YearAggregate]:
    """Per-year totals of non-skipped plays, oldest year first.

    ``average_per_day`` divides by a flat 365 days whatever the year's
    length or how much of it the history covers.
    """
    plays: Dict[int, int] = {}
    total_ms: Dict[int, int] = {}
    tracks: Dict[int, Set[str]] = {}
    artists: Dict[int, Set[str]] = {}

    for record in records:
        if record.skipped:
            continue
        year = record.year
        if year not in plays:
            plays[year] = 0
            total_ms[year] = 0
            tracks[year] = set()
            artists[year] = set()
        plays[year] += 1
        total_ms[year] += record.ms_played
        if record.spotify_track_uri:
            tracks[year].add(record.spotify_track_uri)
        if record.master_metadata_album_artist_name:
            artists[year].add(record.master_metadata_album_artist_name)

    return [
        YearAggregate(
            year=year,
            plays=plays[year],
            total_ms=total_ms[year],
            total_minutes=round_half_up(total_ms[year] / MS_PER_MINUTE),
            total_hours=round_half_up(total_ms[year] / MS_PER_HOUR),
            unique_tracks=len(tracks[year]),
            unique_artists=len(artists[year]),
            average_per_day=round_half_up(plays[year] / DAYS_PER_YEAR),
        )
        for year in sorted(plays)
    ]


def get_complete_summary(records: Sequence[ListeningEvent]) -> CompleteSummary:
    """All-time summary of non-skipped track plays.

    ``average_per_day`` divides by the rounded number of days between the
    oldest and newest qualifying play, and is 0 when they fall on the
    same instant or nothing qualifies.
    """
    track_records = [r for r in records if r.spotify_track_uri and not r.skipped]
    total_ms = sum(r.ms_played for r in track_records)
    unique_tracks = {r.spotify_track_uri for r in track_records}
    unique_artists = {
        r.master_metadata_album_artist_name
        for r in track_records
        if r.master_metadata_album_artist_name
    }

    oldest = newest = None
    days_covered = 0
    years_covered = 0
    if track_records:
        ordered = sorted(track_records, key=lambda r: r.played_at)
        oldest, newest = ordered[0], ordered[-1]
        elapsed = newest.played_at - oldest.played_at
        days_covered = round_half_up(elapsed.total_seconds() * 1000 / MS_PER_DAY)
        years_covered = newest.year - oldest.year + 1

    return CompleteSummary(
        total_plays=len(track_records),
        total_records=len(records),
        total_minutes=round_half_up(total_ms / MS_PER_MINUTE),
        total_hours=round_half_up(total_ms / MS_PER_HOUR),
        total_days=round_half_up(total_ms / MS_PER_DAY),
        unique_tracks=len(unique_tracks),
        unique_artists=len(unique_artists),
        average_per_day=round_half_up(safe_ratio(len(track_records), days_covered)),
        oldest_date=oldest.ts if oldest else None,
        newest_date=newest.ts if newest else None,
        days_covered=days_covered,
        years_covered=years_covered,
    )
