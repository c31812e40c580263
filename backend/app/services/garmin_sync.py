"""Refresh weekly stats: Garmin activities -> weekly aggregation -> replace stored stats."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.schemas.garmin import WeeklyStatData
from app.services import garmin_store
from app.services.garmin_activities import fetch_activities
from app.services.garmin_errors import GarminError
from app.services.garmin_mock import generate_mock_weekly_stats
from app.services.garmin_session import GarminSessionManager
from app.services.stats_calculator import activity_date_range, calculate_weekly_stats

logger = logging.getLogger(__name__)


async def fetch_and_calculate_stats(
    db: AsyncSession,
    manager: GarminSessionManager,
    user_id: int,
    num_weeks: int,
) -> list[WeeklyStatData]:
    start, end = activity_date_range(num_weeks)
    activities = await fetch_activities(db, manager, user_id, start, end)
    return calculate_weekly_stats(activities, num_weeks)


async def refresh_weekly_stats(
    db: AsyncSession,
    manager: GarminSessionManager,
    user_id: int,
    num_weeks: int | None = None,
) -> list[WeeklyStatData]:
    """
    Recompute and store the user's weekly stats. In mock mode the stats are synthetic.
    Provider errors propagate before anything is deleted; delete+insert share one transaction.
    """
    if num_weeks is None:
        num_weeks = settings.stats_weeks
    if settings.garmin_mock_mode:
        stats = generate_mock_weekly_stats(num_weeks)
    else:
        stats = await fetch_and_calculate_stats(db, manager, user_id, num_weeks)
    await garmin_store.replace_weekly_stats(db, user_id, stats)
    logger.info("Weekly stats refreshed for user_id=%s: %s weeks", user_id, len(stats))
    return stats


async def refresh_all_connected(
    session_maker: async_sessionmaker,
    manager: GarminSessionManager,
    concurrency: int = 3,
) -> int:
    """Refresh every connected athlete (scheduled job). Returns how many succeeded."""
    async with session_maker() as session:
        user_ids = await garmin_store.list_connected_user_ids(session)
    if not user_ids:
        return 0

    sem = asyncio.Semaphore(concurrency)

    async def run_for_user(uid: int) -> bool:
        async with sem:
            async with session_maker() as session:
                try:
                    await refresh_weekly_stats(session, manager, uid)
                except GarminError as e:
                    logger.warning("Scheduled stats refresh failed for user_id=%s: %s", uid, e.message)
                    return False
                except Exception:
                    logger.exception("Scheduled stats refresh crashed for user_id=%s", uid)
                    return False
                return True

    results = await asyncio.gather(*[run_for_user(uid) for uid in user_ids])
    return sum(1 for ok in results if ok)
