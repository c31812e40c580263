"""
Weekly running stats from raw provider activities.

Pure functions, no I/O. Only running-family activities count; weeks are Monday-aligned;
average pace is the distance-weighted mean of per-activity paces, so long runs weigh
more than short ones.
"""
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from app.schemas.garmin import RawActivity, WeeklyStatData

RUNNING_TYPES = ("running", "trail_running", "treadmill_running", "track_running")
DEFAULT_NUM_WEEKS = 8


def is_running_activity(activity: RawActivity) -> bool:
    activity_type = (activity.activity_type or "").lower()
    return "run" in activity_type or any(t in activity_type for t in RUNNING_TYPES)


def week_start_for(day: date | datetime) -> date:
    """Monday of the ISO week containing `day`."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ties away from zero: 80.5 -> 81, 0.25 -> 0.3 (digits=1)."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def format_pace(min_per_km: float) -> str:
    """5.5 -> '5:30'."""
    mins = int(min_per_km)
    secs = round((min_per_km - mins) * 60)
    if secs == 60:
        mins, secs = mins + 1, 0
    return f"{mins}:{secs:02d}"


def activity_date_range(num_weeks: int = DEFAULT_NUM_WEEKS, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Fetch window covering the last `num_weeks` weeks, ending now."""
    end = now or datetime.now()
    return end - timedelta(weeks=num_weeks), end


class _WeekBucket:
    __slots__ = ("distance_km", "runs", "time_minutes", "pace_weighted")

    def __init__(self) -> None:
        self.distance_km = 0.0
        self.runs = 0
        self.time_minutes = 0.0
        self.pace_weighted = 0.0  # sum(pace_i * distance_i)

    def add(self, activity: RawActivity) -> None:
        distance_km = max(activity.distance_m or 0.0, 0.0) / 1000
        duration_minutes = max(activity.duration_sec or 0.0, 0.0) / 60
        self.distance_km += distance_km
        self.runs += 1
        self.time_minutes += duration_minutes
        if distance_km > 0:
            self.pace_weighted += (duration_minutes / distance_km) * distance_km

    def finalize(self, week_start: date) -> WeeklyStatData:
        avg_pace = self.pace_weighted / self.distance_km if self.distance_km > 0 else 0.0
        return WeeklyStatData(
            week_start=week_start,
            total_distance_km=round_half_up(self.distance_km, 1),
            total_runs=self.runs,
            avg_pace_min_km=round_half_up(avg_pace, 2),
            total_time_minutes=int(round_half_up(self.time_minutes)),
        )


def calculate_weekly_stats(
    activities: Iterable[RawActivity],
    num_weeks: int = DEFAULT_NUM_WEEKS,
) -> list[WeeklyStatData]:
    """
    Aggregate activities into per-week stats, most recent week first, at most `num_weeks` entries.
    No dedup: the caller is trusted to pass each activity once. Activities without a start time
    cannot be placed in a week and are skipped.
    """
    if num_weeks <= 0:
        return []
    weeks: dict[date, _WeekBucket] = {}
    for activity in activities:
        if not is_running_activity(activity) or activity.start_time is None:
            continue
        key = week_start_for(activity.start_time)
        bucket = weeks.get(key)
        if bucket is None:
            bucket = weeks[key] = _WeekBucket()
        bucket.add(activity)

    ordered = sorted(weeks.items(), key=lambda kv: kv[0], reverse=True)
    return [bucket.finalize(week_start) for week_start, bucket in ordered[:num_weeks]]
