"""
Unit tests for the summary layer.

Tests the scores computed over remote preference data and the
SummaryService that bundles history aggregations.
"""

from datetime import date

import pytest

from listening_stats.core.summary import (
    GenreCount,
    SummaryService,
    analyze_listening_patterns,
    calculate_diversity_score,
    calculate_listening_stats,
    calculate_popularity_trend,
    extract_genres,
    generate_year_stats,
    group_by_time_period,
)
from listening_stats.storage.repository import open_repository


class FakePreferences:
    """In-memory preference source."""

    def __init__(self, tracks, artists, profile=None):
        self.tracks = tracks
        self.artists = artists
        self.profile = profile or {"id": "user-1", "display_name": "Listener"}
        self.calls = []

    def get_top_tracks(self, limit, time_range):
        self.calls.append(("tracks", limit, time_range))
        return self.tracks[:limit]

    def get_top_artists(self, limit, time_range):
        self.calls.append(("artists", limit, time_range))
        return self.artists[:limit]

    def get_profile(self):
        return self.profile


def make_track(track_id, popularity=50, duration_ms=180000, artist_ids=("ar1",), album_id="al1"):
    return {
        "id": track_id,
        "name": f"Track {track_id}",
        "popularity": popularity,
        "duration_ms": duration_ms,
        "artists": [{"id": artist_id} for artist_id in artist_ids],
        "album": {"id": album_id},
    }


def make_raw(ts, uri="spotify:track:a", artist="Artist A", skipped=False):
    return {
        "ts": ts,
        "ms_played": 180000,
        "spotify_track_uri": uri,
        "master_metadata_track_name": uri.split(":")[-1],
        "master_metadata_album_artist_name": artist,
        "platform": "ios",
        "skipped": skipped,
    }


class TestGenres:

    def test_counted_and_ordered(self):
        artists = [
            {"genres": ["rock", "indie"]},
            {"genres": ["indie", "pop"]},
            {"genres": ["pop"]},
            {"name": "No genres"},
        ]

        genres = extract_genres(artists)

        assert genres == [
            GenreCount("indie", 2),
            GenreCount("pop", 2),
            GenreCount("rock", 1),
        ]

    def test_empty(self):
        assert extract_genres([]) == []


class TestDiversityScore:

    @pytest.mark.parametrize("artists, genres, expected", [
        (0, 0, 0),
        (8, 3, 70),
        (10, 5, 100),
        (50, 40, 100),
        (3, 2, 35),
    ])
    def test_score(self, artists, genres, expected):
        assert calculate_diversity_score(artists, genres) == expected


class TestPopularityTrend:

    def test_thresholds_are_exclusive(self):
        tracks = [
            {"popularity": 80},
            {"popularity": 75},
            {"popularity": 70},
            {"popularity": 40},
            {"popularity": 30},
            {"popularity": None},
        ]

        trend = calculate_popularity_trend(tracks)

        assert trend.popular == 2
        assert trend.niche == 2
        assert trend.average == 49  # 295 / 6 = 49.17
        assert trend.mainstream == pytest.approx(33.3)

    def test_empty_list_is_zero(self):
        trend = calculate_popularity_trend([])
        assert (trend.average, trend.popular, trend.niche, trend.mainstream) == (0, 0, 0, 0.0)


class TestYearStats:

    def test_composed_from_top_lists(self):
        tracks = [make_track("t1", duration_ms=180000), make_track("t2", duration_ms=210000)]
        artists = [
            {"id": "ar1", "genres": ["a", "b", "c"]},
            {"id": "ar2", "genres": ["d", "e", "f"]},
        ]

        stats = generate_year_stats(tracks, artists)

        assert stats.total_minutes == 7  # 6.5 rounds up
        assert stats.top_track["id"] == "t1"
        assert stats.top_artist["id"] == "ar1"
        assert len(stats.top_genres) == 5
        assert stats.track_count == 2
        assert stats.artist_count == 2

    def test_empty_lists(self):
        stats = generate_year_stats([], [])
        assert stats.top_track is None
        assert stats.top_artist is None
        assert stats.total_minutes == 0
        assert stats.top_genres == []


class TestListeningStats:

    def test_distinct_artists_and_albums(self):
        tracks = [
            make_track("t1", artist_ids=("ar1", "ar2"), album_id="al1"),
            make_track("t2", artist_ids=("ar2",), album_id="al1"),
            make_track("t3", artist_ids=("ar3",), album_id="al2"),
        ]

        stats = calculate_listening_stats(tracks)

        assert stats.total_tracks == 3
        assert stats.unique_artists == 3
        assert stats.unique_albums == 2


class TestRecentlyPlayed:

    def create_items(self):
        return [
            {"played_at": "2024-01-01T08:00:00Z", "track": {"id": "t1"}},
            {"played_at": "2024-01-01T08:45:00Z", "track": {"id": "t2"}},
            {"played_at": "2024-01-06T20:00:00Z", "track": {"id": "t3"}},
        ]

    def test_group_by_utc_date(self):
        grouped = group_by_time_period(self.create_items())

        assert list(grouped) == ["2024-01-01", "2024-01-06"]
        assert len(grouped["2024-01-01"]) == 2

    def test_patterns_in_utc(self):
        patterns = analyze_listening_patterns(self.create_items(), tz="UTC")

        assert patterns.hour_distribution[8] == 2
        assert patterns.day_distribution[1] == 2
        assert patterns.day_distribution[6] == 1
        assert patterns.peak_hour == "8:00 - 9:00"
        assert patterns.peak_day == "Monday"

    def test_patterns_follow_timezone(self):
        patterns = analyze_listening_patterns(self.create_items(), tz="America/New_York")
        assert patterns.peak_hour_index == 3
        assert patterns.day_distribution[1] == 2


class TestSummaryService:
    """Test overview assembly."""

    def setup_method(self):
        self.repository = open_repository(tz="UTC")
        self.repository.import_history([
            make_raw("2023-12-30T10:00:00Z", uri="spotify:track:old", artist="Old"),
            make_raw("2024-01-01T10:00:00Z"),
            make_raw("2024-01-02T10:00:00Z"),
            make_raw("2024-01-02T11:00:00Z", uri="spotify:track:b", artist="Artist B"),
            make_raw("2024-01-03T10:00:00Z", skipped=True),
        ])

    def teardown_method(self):
        self.repository.close()

    def test_history_overview_all_years(self):
        overview = SummaryService(self.repository).history_overview(today=date(2024, 1, 3))

        assert overview.year is None
        assert overview.summary.total_plays == 4
        assert overview.summary.total_records == 5
        assert [t.uri for t in overview.top_tracks][0] == "spotify:track:a"
        assert [y.year for y in overview.yearly] == [2023, 2024]
        assert overview.streaks.longest == 2
        assert overview.streaks.current == 2
        assert overview.discovery.total_artists_discovered == 3
        assert overview.skip_behavior.skipped == 1
        assert overview.platforms[0].platform == "ios"

    def test_history_overview_one_year(self):
        overview = SummaryService(self.repository).history_overview(year=2024, limit=1)

        assert overview.year == 2024
        assert overview.summary.total_records == 4
        assert len(overview.top_tracks) == 1
        assert [y.year for y in overview.yearly] == [2024]

    def test_history_overview_with_offsetless_timestamps(self):
        self.repository.import_history([make_raw("2024-01-04T10:00:00", uri="spotify:track:c",
                                                 artist="Artist C")])

        overview = SummaryService(self.repository).history_overview(today=date(2024, 1, 4))

        assert overview.summary.newest_date == "2024-01-04T10:00:00"
        assert overview.discovery.discoveries[-1].artist == "Artist C"
        assert self.repository.stats()["newest_date"] == "2024-01-04T10:00:00"

    def test_history_overview_empty_store(self):
        with open_repository(tz="UTC") as empty:
            overview = SummaryService(empty).history_overview(today=date(2024, 1, 1))

        assert overview.summary.total_plays == 0
        assert overview.top_tracks == []
        assert overview.streaks.current == 0

    def test_current_overview(self):
        tracks = [make_track("t1", popularity=90), make_track("t2", popularity=20, album_id="al2")]
        artists = [{"id": "ar1", "genres": ["pop"]}, {"id": "ar2", "genres": ["pop", "jazz"]}]
        preferences = FakePreferences(tracks, artists)

        overview = SummaryService(self.repository, preferences).current_overview(
            limit=10, time_range="short_term"
        )

        assert preferences.calls == [("tracks", 10, "short_term"), ("artists", 10, "short_term")]
        assert overview.profile["id"] == "user-1"
        assert overview.genres == [GenreCount("pop", 2), GenreCount("jazz", 1)]
        assert overview.diversity_score == 30  # (20 + 40) / 2
        assert overview.year_stats.popularity_trend.popular == 1
        assert overview.listening_stats.unique_albums == 2

    def test_current_overview_requires_preferences(self):
        with pytest.raises(ValueError, match="preference source"):
            SummaryService(self.repository).current_overview()
