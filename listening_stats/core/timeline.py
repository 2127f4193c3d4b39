"""
Order-dependent walks over listening history.

Streaks and discoveries both need the complete record set in time order
and must run in a single pass; neither can be computed on partitions and
merged.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

from listening_stats.storage.models import ListeningEvent

DISCOVERY_LIMIT = 100


@dataclass(frozen=True)
class StreakState:
    """Consecutive listening days."""
    current: int
    longest: int
    last_listening_date: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryEntry:
    """A play that introduced a new artist or a new track."""
    date: str
    artist: Optional[str]
    track: Optional[str]
    track_uri: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryTimeline:
    """Distinct artists and tracks found, with the latest discoveries."""
    total_artists_discovered: int
    total_tracks_discovered: int
    discoveries: List[DiscoveryEntry] = field(default_factory=list)


def _trailing_run(days: Sequence[date]) -> int:
    run = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if current - previous == timedelta(days=1) else 1
    return run


def get_listening_streaks(
    records: Sequence[ListeningEvent], today: Optional[date] = None
) -> StreakState:
    """Find the longest and the current run of consecutive listening days.

    A day counts when it has at least one non-skipped play, using the
    local date stored at import. The current streak is the run ending on
    the latest listening day up to ``today``; it is 0 when that day is
    more than one day before ``today``.

    Args:
        records: Listening events
        today: Evaluation date, defaults to the current date

    Returns:
        StreakState; all zeros when nothing qualifies
    """
    today = today or date.today()
    days = sorted({date.fromisoformat(r.date) for r in records if not r.skipped})
    if not days:
        return StreakState(current=0, longest=0)

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        if current - previous == timedelta(days=1):
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    elapsed = [d for d in days if d <= today]
    current = 0
    if elapsed and (today - elapsed[-1]).days <= 1:
        current = _trailing_run(elapsed)

    return StreakState(
        current=current,
        longest=longest,
        last_listening_date=days[-1].isoformat(),
    )


def analyze_discovery(
    records: Sequence[ListeningEvent], limit: int = DISCOVERY_LIMIT
) -> DiscoveryTimeline:
    """Walk non-skipped plays in time order and note first appearances.

    A play is one discovery when it brings a new artist name, a new track
    URI, or both. Totals count every distinct artist and track; only the
    latest ``limit`` discoveries are returned, oldest first.
    """
    plays = [r for r in records if not r.skipped]
    ordered = [
        record
        for _, record in sorted(enumerate(plays), key=lambda item: (item[1].played_at, item[0]))
    ]

    seen_artists = set()
    seen_tracks = set()
    recent: deque = deque(maxlen=max(limit, 0))

    for record in ordered:
        artist = record.master_metadata_album_artist_name
        track_uri = record.spotify_track_uri
        discovered = False

        if artist and artist not in seen_artists:
            seen_artists.add(artist)
            discovered = True
        if track_uri and track_uri not in seen_tracks:
            seen_tracks.add(track_uri)
            discovered = True

        if discovered:
            recent.append(DiscoveryEntry(
                date=record.date,
                artist=artist,
                track=record.master_metadata_track_name,
                track_uri=track_uri,
            ))

    return DiscoveryTimeline(
        total_artists_discovered=len(seen_artists),
        total_tracks_discovered=len(seen_tracks),
        discoveries=list(recent),
    )
