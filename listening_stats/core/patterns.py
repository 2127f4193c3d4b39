"""
Listening pattern analysis.

Histograms over the stored calendar fields, skip behaviour of track plays,
and platform usage.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from listening_stats.storage.models import ListeningEvent

from .rounding import percentage, round_half_up

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class TimePatterns:
    """Hour, weekday and month histograms with their peak buckets."""
    hour_distribution: List[int]  # 24 buckets
    day_distribution: List[int]  # 7 buckets, Sunday first
    month_distribution: List[int]  # 12 buckets, January first
    peak_hour_index: int
    peak_day_index: int
    peak_month_index: int

    @property
    def peak_hour(self) -> str:
        return f"{self.peak_hour_index}:00 - {self.peak_hour_index + 1}:00"

    @property
    def peak_day(self) -> str:
        return DAY_NAMES[self.peak_day_index]

    @property
    def peak_month(self) -> str:
        return MONTH_NAMES[self.peak_month_index]


@dataclass(frozen=True)
class SkipBehavior:
    """Skip statistics over plays that carry a track URI."""
    total_plays: int
    skipped: int
    completed: int
    skip_rate: float
    completion_rate: float
    skip_reasons: Dict[str, int]


@dataclass(frozen=True)
class PlatformAggregate:
    """Non-skipped plays on one platform."""
    platform: str
    plays: int
    total_ms: int
    total_minutes: int


def peak_index(counts: Sequence[int]) -> int:
    """Index of the maximum count; the lowest index wins a tie."""
    best = 0
    for index, count in enumerate(counts):
        if count > counts[best]:
            best = index
    return best


def analyze_time_patterns(records: Sequence[ListeningEvent]) -> TimePatterns:
    """Build hour/day/month histograms from non-skipped plays.

    Buckets come from the calendar fields stored at import. With no
    qualifying plays every histogram is zero and every peak is index 0.
    """
    hours = [0] * 24
    days = [0] * 7
    months = [0] * 12

    for record in records:
        if record.skipped:
            continue
        hours[record.hour] += 1
        days[record.day_of_week] += 1
        months[record.month - 1] += 1

    return TimePatterns(
        hour_distribution=hours,
        day_distribution=days,
        month_distribution=months,
        peak_hour_index=peak_index(hours),
        peak_day_index=peak_index(days),
        peak_month_index=peak_index(months),
    )


def analyze_skip_behavior(records: Sequence[ListeningEvent]) -> SkipBehavior:
    """Skip and completion rates of track plays, with skips by end reason."""
    track_records = [r for r in records if r.spotify_track_uri]
    total = len(track_records)
    skipped = 0
    reasons: Dict[str, int] = {}

    for record in track_records:
        if record.skipped:
            skipped += 1
            reason = record.reason_end or "unknown"
            reasons[reason] = reasons.get(reason, 0) + 1

    completed = total - skipped
    return SkipBehavior(
        total_plays=total,
        skipped=skipped,
        completed=completed,
        skip_rate=percentage(skipped, total),
        completion_rate=percentage(completed, total),
        skip_reasons=reasons,
    )


def analyze_platforms(records: Sequence[ListeningEvent]) -> List[PlatformAggregate]:
    """Non-skipped plays per platform, most used first."""
    plays: Dict[str, int] = {}
    total_ms: Dict[str, int] = {}
    order: List[str] = []

    for record in records:
        if record.skipped:
            continue
        platform = record.platform or "Unknown"
        if platform not in plays:
            order.append(platform)
            plays[platform] = 0
            total_ms[platform] = 0
        plays[platform] += 1
        total_ms[platform] += record.ms_played

    ranked = [
        platform
        for _, platform in sorted(enumerate(order), key=lambda item: (-plays[item[1]], item[0]))
    ]
    return [
        PlatformAggregate(
            platform=platform,
            plays=plays[platform],
            total_ms=total_ms[platform],
            total_minutes=round_half_up(total_ms[platform] / 60000),
        )
        for platform in ranked
    ]
