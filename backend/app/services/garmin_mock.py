"""Demo/offline Garmin: synthetic weekly stats and activities, plus a provider that accepts any login."""

import logging
import random
from datetime import date, datetime, timedelta

from app.schemas.garmin import WeeklyStatData
from app.services.garmin_errors import ProviderAuthError
from app.services.garmin_provider import ProviderSession
from app.services.stats_calculator import round_half_up, week_start_for

logger = logging.getLogger(__name__)

MOCK_TOKEN_PREFIX = "mock-session:"
MOCK_RUN_NAMES = ["Easy Run", "Tempo Run", "Long Run", "Interval Training", "Recovery Run"]


def generate_mock_weekly_stats(
    num_weeks: int = 4,
    today: date | None = None,
    rng: random.Random | None = None,
) -> list[WeeklyStatData]:
    """One entry per Monday going back from the current week, shaped like realistic marathon training."""
    rng = rng or random.Random()
    current_monday = week_start_for(today or date.today())
    stats = []
    for i in range(num_weeks):
        total_runs = rng.randint(4, 6)
        total_distance_km = round_half_up(rng.uniform(30, 70), 1)
        avg_pace_min_km = round_half_up(rng.uniform(4.5, 6.0), 2)
        stats.append(
            WeeklyStatData(
                week_start=current_monday - timedelta(weeks=i),
                total_distance_km=total_distance_km,
                total_runs=total_runs,
                avg_pace_min_km=avg_pace_min_km,
                total_time_minutes=int(round_half_up(total_distance_km * avg_pace_min_km)),
            )
        )
    return stats


def generate_mock_activities(
    count: int = 10,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[dict]:
    """Activity-list items in Garmin's shape, one run per day going back from today."""
    rng = rng or random.Random()
    now = now or datetime.now()
    out = []
    for i in range(count):
        start = (now - timedelta(days=i)).replace(hour=7, minute=0, second=0, microsecond=0)
        distance_km = round(rng.uniform(5, 25), 1)
        pace_min_km = round(rng.uniform(4.5, 6.5), 2)
        out.append(
            {
                "activityId": int(now.timestamp()) * 100 + i,
                "activityName": rng.choice(MOCK_RUN_NAMES),
                "activityType": {"typeKey": "running"},
                "startTimeLocal": start.strftime("%Y-%m-%d %H:%M:%S"),
                "distance": distance_km * 1000,
                "duration": round(distance_km * pace_min_km * 60),
                "averageHR": rng.randint(130, 170),
                "calories": int(distance_km * 60 + rng.random() * 100),
            }
        )
    return out


class MockGarminProvider:
    """ActivityProvider for demo mode. Any non-empty credentials log in."""

    def __init__(self, activity_count: int = 30):
        self.activity_count = activity_count

    async def login(self, username: str, password: str) -> ProviderSession:
        if not username or not password:
            raise ProviderAuthError("credentials required")
        garmin_user_id = username.split("@")[0]
        logger.info("Mock Garmin login for %s", garmin_user_id)
        return ProviderSession(handle=None, garmin_user_id=garmin_user_id, tokens=MOCK_TOKEN_PREFIX + garmin_user_id)

    async def validate_session(self, tokens: str) -> ProviderSession:
        if not tokens.startswith(MOCK_TOKEN_PREFIX):
            raise ProviderAuthError("unknown mock session")
        return ProviderSession(handle=None, garmin_user_id=tokens[len(MOCK_TOKEN_PREFIX):], tokens=tokens)

    async def list_recent_activities(self, session: ProviderSession, page_size: int) -> list[dict]:
        return generate_mock_activities(min(page_size, self.activity_count))
