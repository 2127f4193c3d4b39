"""
Top track and artist rankings.

Ranks identities by play count over a record set. Ties are broken by
first encounter in the input, so the same input always ranks the same way.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from listening_stats.storage.models import ListeningEvent

from .rounding import percentage, round_half_up, safe_ratio


@dataclass(frozen=True)
class TrackAggregate:
    """Play statistics for one track URI."""
    uri: str
    name: Optional[str]
    artist: Optional[str]
    album: Optional[str]
    play_count: int
    total_ms: int
    completed: int
    skipped: int
    rank: int
    total_minutes: int
    average_ms: int
    skip_rate: float  # percent, one decimal


@dataclass(frozen=True)
class ArtistAggregate:
    """Play statistics for one artist name."""
    name: str
    play_count: int
    total_ms: int
    completed: int
    skipped: int
    unique_tracks: int
    rank: int
    total_minutes: int
    average_ms: int
    skip_rate: float  # percent, one decimal


@dataclass
class _Tally:
    first_seen: int
    sample: ListeningEvent
    play_count: int = 0
    total_ms: int = 0
    completed: int = 0
    skipped: int = 0
    track_uris: Set[str] = field(default_factory=set)


def _rank(
    records: Sequence[ListeningEvent],
    key: Callable[[ListeningEvent], Optional[str]],
    limit: int,
) -> List[_Tally]:
    tallies: Dict[str, _Tally] = {}
    for record in records:
        identity = key(record)
        if not identity or record.skipped:
            continue
        tally = tallies.get(identity)
        if tally is None:
            tally = tallies[identity] = _Tally(first_seen=len(tallies), sample=record)
        tally.play_count += 1
        tally.total_ms += record.ms_played
        # Skipped plays never reach here, so skipped stays 0 in rankings
        tally.completed += 1
        if record.spotify_track_uri:
            tally.track_uris.add(record.spotify_track_uri)

    ordered = sorted(tallies.values(), key=lambda t: (-t.play_count, t.first_seen))
    return ordered[:max(limit, 0)]


def get_top_tracks(records: Sequence[ListeningEvent], limit: int = 50) -> List[TrackAggregate]:
    """Rank tracks by number of non-skipped plays.

    Args:
        records: Listening events to rank
        limit: Maximum number of tracks to return

    Returns:
        Up to ``limit`` tracks, most played first, ranked from 1
    """
    return [
        TrackAggregate(
            uri=tally.sample.spotify_track_uri,
            name=tally.sample.master_metadata_track_name,
            artist=tally.sample.master_metadata_album_artist_name,
            album=tally.sample.master_metadata_album_album_name,
            play_count=tally.play_count,
            total_ms=tally.total_ms,
            completed=tally.completed,
            skipped=tally.skipped,
            rank=index + 1,
            total_minutes=round_half_up(tally.total_ms / 60000),
            average_ms=round_half_up(safe_ratio(tally.total_ms, tally.play_count)),
            skip_rate=percentage(tally.skipped, tally.play_count),
        )
        for index, tally in enumerate(
            _rank(records, lambda r: r.spotify_track_uri, limit)
        )
    ]


def get_top_artists(records: Sequence[ListeningEvent], limit: int = 50) -> List[ArtistAggregate]:
    """Rank artists by number of non-skipped plays."""
    return [
        ArtistAggregate(
            name=tally.sample.master_metadata_album_artist_name,
            play_count=tally.play_count,
            total_ms=tally.total_ms,
            completed=tally.completed,
            skipped=tally.skipped,
            unique_tracks=len(tally.track_uris),
            rank=index + 1,
            total_minutes=round_half_up(tally.total_ms / 60000),
            average_ms=round_half_up(safe_ratio(tally.total_ms, tally.play_count)),
            skip_rate=percentage(tally.skipped, tally.play_count),
        )
        for index, tally in enumerate(
            _rank(records, lambda r: r.master_metadata_album_artist_name, limit)
        )
    ]
