"""
Unit tests for top track and artist rankings.
"""

from listening_stats.core.importer import enrich_record
from listening_stats.core.rankings import get_top_artists, get_top_tracks


def create_event(uri="spotify:track:a", artist="Artist A", name=None, ms_played=200000,
                 skipped=False, ts="2024-01-01T12:00:00Z"):
    """Create an enriched listening event."""
    return enrich_record({
        "ts": ts,
        "ms_played": ms_played,
        "spotify_track_uri": uri,
        "master_metadata_track_name": name or (uri and uri.split(":")[-1]),
        "master_metadata_album_artist_name": artist,
        "master_metadata_album_album_name": "Album",
        "skipped": skipped,
    }, tz="UTC")


class TestTopTracks:
    """Test track ranking."""

    def test_ranked_by_play_count(self):
        records = [
            create_event("spotify:track:a"),
            create_event("spotify:track:b"),
            create_event("spotify:track:b"),
            create_event("spotify:track:c"),
            create_event("spotify:track:b"),
            create_event("spotify:track:c"),
        ]

        tracks = get_top_tracks(records)

        assert [t.uri for t in tracks] == ["spotify:track:b", "spotify:track:c", "spotify:track:a"]
        assert [t.play_count for t in tracks] == [3, 2, 1]
        assert [t.rank for t in tracks] == [1, 2, 3]

    def test_limit_truncates_and_ranks_are_contiguous(self):
        records = [create_event(f"spotify:track:{i}") for i in range(10)]
        tracks = get_top_tracks(records, limit=4)

        assert len(tracks) == 4
        assert [t.rank for t in tracks] == [1, 2, 3, 4]
        counts = [t.play_count for t in tracks]
        assert counts == sorted(counts, reverse=True)

    def test_ties_keep_first_encounter_order(self):
        records = [
            create_event("spotify:track:z"),
            create_event("spotify:track:m"),
            create_event("spotify:track:a"),
            create_event("spotify:track:a"),
            create_event("spotify:track:m"),
            create_event("spotify:track:z"),
        ]

        tracks = get_top_tracks(records)

        assert [t.uri for t in tracks] == ["spotify:track:z", "spotify:track:m", "spotify:track:a"]

    def test_skipped_and_unidentified_records_ignored(self):
        records = [
            create_event("spotify:track:a", skipped=True),
            create_event(None),
            create_event("spotify:track:b"),
        ]

        tracks = get_top_tracks(records)

        assert [t.uri for t in tracks] == ["spotify:track:b"]
        assert tracks[0].skipped == 0
        assert tracks[0].completed == 1
        assert tracks[0].skip_rate == 0.0

    def test_durations(self):
        records = [
            create_event("spotify:track:a", ms_played=60000),
            create_event("spotify:track:a", ms_played=90001),
        ]

        track = get_top_tracks(records)[0]

        assert track.total_ms == 150001
        assert track.total_minutes == 3
        assert track.average_ms == 75001  # 75000.5 rounds up
        assert track.name == "a"
        assert track.artist == "Artist A"
        assert track.album == "Album"

    def test_empty_input(self):
        assert get_top_tracks([]) == []
        assert get_top_tracks([create_event()], limit=0) == []


class TestTopArtists:
    """Test artist ranking."""

    def test_ranked_with_unique_tracks(self):
        records = [
            create_event("spotify:track:a1", artist="A"),
            create_event("spotify:track:b1", artist="B"),
            create_event("spotify:track:b2", artist="B"),
            create_event("spotify:track:b1", artist="B"),
            create_event(None, artist="A"),
            create_event("spotify:track:c1", artist=None),
        ]

        artists = get_top_artists(records)

        assert [a.name for a in artists] == ["B", "A"]
        assert artists[0].play_count == 3
        assert artists[0].unique_tracks == 2
        assert artists[1].play_count == 2
        assert artists[1].unique_tracks == 1
        assert [a.rank for a in artists] == [1, 2]

    def test_skipped_plays_not_counted(self):
        records = [
            create_event(artist="A", skipped=True),
            create_event(artist="A", skipped=True),
            create_event(artist="B"),
        ]

        artists = get_top_artists(records)

        assert [a.name for a in artists] == ["B"]

    def test_ties_keep_first_encounter_order(self):
        records = [create_event(artist=name) for name in ("Y", "X", "X", "Y")]
        assert [a.name for a in get_top_artists(records)] == ["Y", "X"]
