# listening_stats/demo/seed_demo_data.py

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from listening_stats.core.importer import ImportResult
from listening_stats.storage.repository import HistoryRepository

CATALOG = [
    ("spotify:track:demo1", "Northern Lights", "Aurora Field", "Polar Nights"),
    ("spotify:track:demo2", "Slow Tide", "Aurora Field", "Polar Nights"),
    ("spotify:track:demo3", "Paper Streets", "The Lanterns", "City Hours"),
    ("spotify:track:demo4", "Glass Rooftops", "The Lanterns", "City Hours"),
    ("spotify:track:demo5", "Dust Radio", "Mara Quinn", "Low Frequencies"),
]
PLATFORMS = ["android", "ios", "desktop"]


def build_demo_history(days: int = 14, end: Optional[date] = None) -> List[Dict[str, Any]]:
    """Raw export records covering ``days`` days up to ``end``.

    Every day gets three plays in the evening; every fourth play is skipped
    and one podcast episode is heard each weekend day.
    """
    end = end or date.today()
    records = []
    play = 0
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        for slot in range(3):
            uri, name, artist, album = CATALOG[(play + offset) % len(CATALOG)]
            played_at = datetime.combine(day, time(18 + slot, 15), tzinfo=timezone.utc)
            skipped = play % 4 == 3
            records.append({
                "ts": played_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
                "ms_played": 35000 if skipped else 215000,
                "spotify_track_uri": uri,
                "master_metadata_track_name": name,
                "master_metadata_album_artist_name": artist,
                "master_metadata_album_album_name": album,
                "platform": PLATFORMS[play % len(PLATFORMS)],
                "skipped": skipped,
                "reason_end": "fwdbtn" if skipped else "trackdone",
            })
            play += 1
        if day.weekday() >= 5:
            records.append({
                "ts": f"{day.isoformat()}T09:00:00Z",
                "ms_played": 1800000,
                "spotify_episode_uri": "spotify:episode:demo",
                "platform": "android",
                "reason_end": "trackdone",
            })
    return records


def seed_demo_data(repository: HistoryRepository, days: int = 14,
                   end: Optional[date] = None) -> ImportResult:
    """Import the demo history into an open repository."""
    return repository.import_history(build_demo_history(days, end))


if __name__ == "__main__":
    with HistoryRepository() as repo:
        result = seed_demo_data(repo)
    print(f"Demo listening history inserted: {result.imported} records")
