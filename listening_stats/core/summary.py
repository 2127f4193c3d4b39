"""
Summary layer for dashboards.

Combines the remote service's current top tracks and artists with scores
computed locally, and bundles the history aggregations for display.

The remote API client and its authentication live outside this package;
they are consumed through the PreferenceSource protocol.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timezone, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from listening_stats.storage.models import parse_timestamp
from listening_stats.storage.repository import HistoryRepository

from .importer import TimezoneLike, resolve_timezone, to_local
from .patterns import (
    DAY_NAMES,
    PlatformAggregate,
    SkipBehavior,
    TimePatterns,
    analyze_platforms,
    analyze_skip_behavior,
    analyze_time_patterns,
    peak_index,
)
from .rankings import ArtistAggregate, TrackAggregate, get_top_artists, get_top_tracks
from .rollups import CompleteSummary, YearAggregate, get_complete_summary, get_yearly_stats
from .rounding import percentage, round_half_up, safe_ratio
from .timeline import DISCOVERY_LIMIT, DiscoveryTimeline, StreakState, analyze_discovery, get_listening_streaks

logger = logging.getLogger(__name__)

ARTIST_CEILING = 10
GENRE_CEILING = 5
POPULAR_THRESHOLD = 70
NICHE_THRESHOLD = 40
TOP_GENRES = 5


class PreferenceSource(Protocol):
    """Remote source of the user's current preferences."""

    def get_top_tracks(self, limit: int, time_range: str) -> List[Mapping[str, Any]]:
        ...

    def get_top_artists(self, limit: int, time_range: str) -> List[Mapping[str, Any]]:
        ...

    def get_profile(self) -> Mapping[str, Any]:
        ...


@dataclass(frozen=True)
class GenreCount:
    genre: str
    count: int


@dataclass(frozen=True)
class PopularityTrend:
    """Popularity spread of a track list."""
    average: int
    popular: int
    niche: int
    mainstream: float  # percent of tracks above the popular threshold


@dataclass(frozen=True)
class YearStats:
    """Year-end view of the current top tracks and artists."""
    total_minutes: int
    top_track: Optional[Mapping[str, Any]]
    top_artist: Optional[Mapping[str, Any]]
    top_genres: List[GenreCount]
    popularity_trend: PopularityTrend
    track_count: int
    artist_count: int


@dataclass(frozen=True)
class ListeningStats:
    total_tracks: int
    unique_artists: int
    unique_albums: int


@dataclass(frozen=True)
class RecentPatterns:
    """Hour and weekday histograms of recently played items."""
    hour_distribution: List[int]
    day_distribution: List[int]
    peak_hour_index: int
    peak_day_index: int

    @property
    def peak_hour(self) -> str:
        return f"{self.peak_hour_index}:00 - {self.peak_hour_index + 1}:00"

    @property
    def peak_day(self) -> str:
        return DAY_NAMES[self.peak_day_index]


@dataclass(frozen=True)
class HistoryOverview:
    """Every history aggregation over one record set."""
    year: Optional[int]
    summary: CompleteSummary
    top_tracks: List[TrackAggregate]
    top_artists: List[ArtistAggregate]
    time_patterns: TimePatterns
    skip_behavior: SkipBehavior
    platforms: List[PlatformAggregate]
    yearly: List[YearAggregate]
    streaks: StreakState
    discovery: DiscoveryTimeline


@dataclass(frozen=True)
class CurrentOverview:
    profile: Mapping[str, Any]
    year_stats: YearStats
    diversity_score: int
    listening_stats: ListeningStats
    genres: List[GenreCount] = field(default_factory=list)


def extract_genres(artists: Sequence[Mapping[str, Any]]) -> List[GenreCount]:
    """Count genres across artists, most frequent first.

    Ties keep the order in which genres first appear.
    """
    counts: Dict[str, int] = {}
    for artist in artists:
        for genre in artist.get("genres") or []:
            counts[genre] = counts.get(genre, 0) + 1

    ranked = sorted(enumerate(counts.items()), key=lambda item: (-item[1][1], item[0]))
    return [GenreCount(genre=genre, count=count) for _, (genre, count) in ranked]


def calculate_diversity_score(artist_count: int, genre_count: int) -> int:
    """Average of artist and genre variety, each capped at 100."""
    artist_score = min(artist_count / ARTIST_CEILING * 100, 100)
    genre_score = min(genre_count / GENRE_CEILING * 100, 100)
    return round_half_up((artist_score + genre_score) / 2)


def calculate_popularity_trend(tracks: Sequence[Mapping[str, Any]]) -> PopularityTrend:
    """Mean popularity plus popular (> 70) and niche (< 40) counts.

    An empty list yields zeros throughout.
    """
    scores = [track.get("popularity") or 0 for track in tracks]
    popular = sum(1 for score in scores if score > POPULAR_THRESHOLD)
    niche = sum(1 for score in scores if score < NICHE_THRESHOLD)
    return PopularityTrend(
        average=round_half_up(safe_ratio(sum(scores), len(scores))),
        popular=popular,
        niche=niche,
        mainstream=percentage(popular, len(scores)),
    )


def generate_year_stats(
    top_tracks: Sequence[Mapping[str, Any]],
    top_artists: Sequence[Mapping[str, Any]],
) -> YearStats:
    """Compose the year-end view from the current top lists."""
    total_ms = sum(track.get("duration_ms") or 0 for track in top_tracks)
    return YearStats(
        total_minutes=round_half_up(total_ms / 60000),
        top_track=top_tracks[0] if top_tracks else None,
        top_artist=top_artists[0] if top_artists else None,
        top_genres=extract_genres(top_artists)[:TOP_GENRES],
        popularity_trend=calculate_popularity_trend(top_tracks),
        track_count=len(top_tracks),
        artist_count=len(top_artists),
    )


def calculate_listening_stats(tracks: Sequence[Mapping[str, Any]]) -> ListeningStats:
    """Track count with distinct artist and album ids."""
    artist_ids = {
        artist.get("id")
        for track in tracks
        for artist in track.get("artists") or []
        if artist.get("id")
    }
    album_ids = {(track.get("album") or {}).get("id") for track in tracks} - {None}
    return ListeningStats(
        total_tracks=len(tracks),
        unique_artists=len(artist_ids),
        unique_albums=len(album_ids),
    )


def group_by_time_period(recent_items: Sequence[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    """Group recently played items by the UTC date of ``played_at``."""
    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for item in recent_items:
        played = to_local(parse_timestamp(item["played_at"]), timezone.utc)
        grouped.setdefault(played.date().isoformat(), []).append(item)
    return grouped


def analyze_listening_patterns(
    recent_items: Sequence[Mapping[str, Any]], tz: TimezoneLike = None
) -> RecentPatterns:
    """Hour and weekday histograms of recently played items in ``tz``."""
    zone: Optional[tzinfo] = resolve_timezone(tz)
    hours = [0] * 24
    days = [0] * 7
    for item in recent_items:
        played = to_local(parse_timestamp(item["played_at"]), zone)
        hours[played.hour] += 1
        days[(played.weekday() + 1) % 7] += 1
    return RecentPatterns(
        hour_distribution=hours,
        day_distribution=days,
        peak_hour_index=peak_index(hours),
        peak_day_index=peak_index(days),
    )


class SummaryService:
    """Assembles dashboard objects from stored history and current preferences."""

    def __init__(
        self,
        repository: HistoryRepository,
        preferences: Optional[PreferenceSource] = None,
    ):
        self.repository = repository
        self.preferences = preferences

    def history_overview(
        self,
        year: Optional[int] = None,
        today: Optional[date] = None,
        limit: int = 50,
        discovery_limit: int = DISCOVERY_LIMIT,
    ) -> HistoryOverview:
        """Run every history aggregation over all records or one year."""
        if year is None:
            records = self.repository.all()
        else:
            records = self.repository.by_year(year)
        logger.debug("Building history overview over %d records", len(records))

        return HistoryOverview(
            year=year,
            summary=get_complete_summary(records),
            top_tracks=get_top_tracks(records, limit),
            top_artists=get_top_artists(records, limit),
            time_patterns=analyze_time_patterns(records),
            skip_behavior=analyze_skip_behavior(records),
            platforms=analyze_platforms(records),
            yearly=get_yearly_stats(records),
            streaks=get_listening_streaks(records, today=today),
            discovery=analyze_discovery(records, limit=discovery_limit),
        )

    def current_overview(self, limit: int = 50, time_range: str = "medium_term") -> CurrentOverview:
        """Score the user's current top tracks and artists.

        Raises:
            ValueError: If no preference source was configured
        """
        if self.preferences is None:
            raise ValueError("A preference source is required for the current overview")

        top_tracks = self.preferences.get_top_tracks(limit, time_range)
        top_artists = self.preferences.get_top_artists(limit, time_range)
        genres = extract_genres(top_artists)

        return CurrentOverview(
            profile=self.preferences.get_profile(),
            year_stats=generate_year_stats(top_tracks, top_artists),
            diversity_score=calculate_diversity_score(len(top_artists), len(genres)),
            listening_stats=calculate_listening_stats(top_tracks),
            genres=genres,
        )
